"""
Module: stock_kernel.selectors.issuance_selector
Responsibility: Issued-item listings with overdue state, a holder's items,
    and transfer history.
Architecture position: Kernel > Selectors.

Overdue flags are computed as of the ``as_of`` instant the caller passes
in; the same inputs always give the same rows.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import aliased

from stock_kernel.db.types import ensure_utc
from stock_kernel.domain.due_dates import days_overdue, issuance_status, is_overdue
from stock_kernel.exceptions import InvalidFieldError
from stock_kernel.models.issued_item import IssuedItem, ItemTransfer
from stock_kernel.models.request import Request
from stock_kernel.models.stock_item import StockItem
from stock_kernel.models.user import User
from stock_kernel.selectors.base import BaseSelector

ISSUANCE_FILTERS = ("active", "overdue", "returned")


@dataclass(frozen=True)
class IssuedRow:
    """An issued item joined with its stock item, holder and request."""

    id: UUID
    item_id: UUID
    item_name: str
    item_type: str
    current_stock_balance: int
    user_id: UUID
    holder_name: str
    holder_email: str
    request_id: UUID | None
    request_status: str | None
    quantity_issued: int
    issued_date: datetime
    return_due: datetime
    returned: bool
    return_date: datetime | None
    admin_notes: str | None
    issued_to: str | None
    is_overdue: bool
    days_overdue: int
    status: str


@dataclass(frozen=True)
class TransferRow:
    id: UUID
    issued_item_id: UUID
    item_name: str
    from_user_id: UUID
    from_user_name: str
    to_user_id: UUID
    to_user_name: str
    transfer_date: datetime
    notes: str | None


def issued_rows_statement():
    """Base SELECT for IssuedRow; callers add filters and ordering."""
    return (
        select(
            IssuedItem,
            StockItem.name,
            StockItem.item_type,
            StockItem.quantity,
            User.name,
            User.email,
            Request.status,
        )
        .join(StockItem, StockItem.id == IssuedItem.item_id)
        .join(User, User.id == IssuedItem.user_id)
        .outerjoin(Request, Request.id == IssuedItem.request_id)
    )


def to_issued_row(result_row, as_of: datetime) -> IssuedRow:
    issued, item_name, item_type, stock_balance, holder_name, holder_email, request_status = (
        result_row
    )
    return_due = ensure_utc(issued.return_due)
    return IssuedRow(
        id=issued.id,
        item_id=issued.item_id,
        item_name=item_name,
        item_type=item_type,
        current_stock_balance=stock_balance,
        user_id=issued.user_id,
        holder_name=holder_name,
        holder_email=holder_email,
        request_id=issued.request_id,
        request_status=request_status,
        quantity_issued=issued.quantity_issued,
        issued_date=ensure_utc(issued.issued_date),
        return_due=return_due,
        returned=issued.returned,
        return_date=ensure_utc(issued.return_date),
        admin_notes=issued.admin_notes,
        issued_to=issued.issued_to,
        is_overdue=is_overdue(as_of, return_due, issued.returned),
        days_overdue=days_overdue(as_of, return_due, issued.returned),
        status=issuance_status(as_of, return_due, issued.returned),
    )


class IssuanceSelector(BaseSelector[IssuedItem]):
    """Read-only queries over issued items and transfers."""

    def list_issued(
        self,
        as_of: datetime,
        status: str | None = None,
        user_id: UUID | None = None,
        item_id: UUID | None = None,
    ) -> list[IssuedRow]:
        """
        Issued items, newest issue first.

        Args:
            as_of: Instant the overdue flags are computed for.
            status: ``active`` (out, not overdue), ``overdue`` or ``returned``.
            user_id: Only items currently held by this user.
            item_id: Only issues of this stock item.

        Raises:
            InvalidFieldError: Unknown status filter.
        """
        if status is not None and status not in ISSUANCE_FILTERS:
            raise InvalidFieldError("status", f"must be one of {', '.join(ISSUANCE_FILTERS)}")

        stmt = issued_rows_statement().order_by(IssuedItem.issued_date.desc(), IssuedItem.id)
        if user_id is not None:
            stmt = stmt.where(IssuedItem.user_id == user_id)
        if item_id is not None:
            stmt = stmt.where(IssuedItem.item_id == item_id)
        if status == "returned":
            stmt = stmt.where(IssuedItem.returned.is_(True))
        elif status is not None:
            stmt = stmt.where(IssuedItem.returned.is_(False))

        as_of = ensure_utc(as_of)
        rows = [to_issued_row(row, as_of) for row in self.session.execute(stmt).all()]
        if status in ("active", "overdue"):
            rows = [row for row in rows if row.status == status]
        return rows

    def held_by(self, user_id: UUID, as_of: datetime) -> list[IssuedRow]:
        """Items a user currently holds (not returned), overdue ones included."""
        return [
            row
            for row in self.list_issued(as_of, user_id=user_id)
            if not row.returned
        ]

    def overdue(self, as_of: datetime) -> list[IssuedRow]:
        return self.list_issued(as_of, status="overdue")

    def transfer_history(
        self,
        issued_item_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> list[TransferRow]:
        """
        Transfers, oldest first.

        Args:
            issued_item_id: Only transfers of this issued item.
            user_id: Only transfers from or to this user.
        """
        from_user = aliased(User)
        to_user = aliased(User)
        stmt = (
            select(ItemTransfer, StockItem.name, from_user.name, to_user.name)
            .join(IssuedItem, IssuedItem.id == ItemTransfer.issued_item_id)
            .join(StockItem, StockItem.id == IssuedItem.item_id)
            .join(from_user, from_user.id == ItemTransfer.from_user_id)
            .join(to_user, to_user.id == ItemTransfer.to_user_id)
            .order_by(ItemTransfer.transfer_date, ItemTransfer.id)
        )
        if issued_item_id is not None:
            stmt = stmt.where(ItemTransfer.issued_item_id == issued_item_id)
        if user_id is not None:
            stmt = stmt.where(
                (ItemTransfer.from_user_id == user_id) | (ItemTransfer.to_user_id == user_id)
            )

        return [
            TransferRow(
                id=transfer.id,
                issued_item_id=transfer.issued_item_id,
                item_name=item_name,
                from_user_id=transfer.from_user_id,
                from_user_name=from_name,
                to_user_id=transfer.to_user_id,
                to_user_name=to_name,
                transfer_date=ensure_utc(transfer.transfer_date),
                notes=transfer.notes,
            )
            for transfer, item_name, from_name, to_name in self.session.execute(stmt).all()
        ]
