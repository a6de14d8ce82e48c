"""
Value objects for the stock domain.

RequestLine is the (item, quantity) pair a user asks for.  Lines are
stored on the request row as a JSON list, so this module also owns the
conversion to and from that stored form.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from stock_kernel.exceptions import EmptyRequestError, InvalidQuantityError


def require_positive_quantity(value: Any, field: str = "quantity") -> int:
    """Return ``value`` if it is a positive int, else raise InvalidQuantityError."""
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidQuantityError(value, field)
    return value


@dataclass(frozen=True)
class RequestLine:
    """One requested stock item and quantity, with the item name at request time."""

    item_id: UUID
    quantity: int
    item_name: str = ""

    def __post_init__(self) -> None:
        require_positive_quantity(self.quantity)

    def to_json(self) -> dict[str, Any]:
        return {
            "item_id": str(self.item_id),
            "item_name": self.item_name,
            "quantity": self.quantity,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> RequestLine:
        return cls(
            item_id=UUID(str(data["item_id"])),
            quantity=int(data["quantity"]),
            item_name=data.get("item_name") or "",
        )


def validate_lines(lines: Iterable[RequestLine]) -> tuple[RequestLine, ...]:
    """
    Check a line list before it is stored.

    Raises:
        EmptyRequestError: No lines.
        InvalidQuantityError: A line quantity is not a positive int.
    """
    checked = tuple(lines)
    if not checked:
        raise EmptyRequestError()
    for line in checked:
        require_positive_quantity(line.quantity)
    return checked


def lines_to_json(lines: Iterable[RequestLine]) -> list[dict[str, Any]]:
    return [line.to_json() for line in lines]


def lines_from_json(data: list[dict[str, Any]] | None) -> tuple[RequestLine, ...]:
    return tuple(RequestLine.from_json(entry) for entry in data or ())
