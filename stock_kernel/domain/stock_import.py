"""
Bulk stock import -- parse pasted comma-separated lines into item drafts.

Line formats (one item per line):

    general:  Name, Type, Quantity, Description, Vendor
    medical:  Name, Type, Quantity, Description, Vendor, Batch Number, Expiry (YYYY-MM-DD)

A quantity that is not a whole number counts as 0.  Lines without a name
or type, medical lines without a batch number or a valid expiry date, and
lines with a negative quantity are skipped; their 1-based line numbers
are reported back so the caller can show them.

Pure: no database access.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date

from stock_kernel.models.stock_item import StockCategory, UnitType


@dataclass(frozen=True)
class StockItemDraft:
    """Everything needed to create one stock item."""

    name: str
    item_type: str
    quantity: int = 0
    description: str | None = None
    purchase_vendor: str | None = None
    stock_category: StockCategory = StockCategory.GENERAL
    batch_number: str | None = None
    expiry_date: date | None = None
    unit_type: UnitType = UnitType.PCS


@dataclass(frozen=True)
class ImportParseResult:
    drafts: tuple[StockItemDraft, ...]
    skipped_lines: tuple[int, ...]


def _field(parts: list[str], index: int) -> str | None:
    if index < len(parts) and parts[index]:
        return parts[index]
    return None


def _parse_quantity(raw: str | None) -> int:
    try:
        return int(raw) if raw is not None else 0
    except ValueError:
        return 0


def _parse_expiry(raw: str | None) -> date | None:
    if raw is None:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None


def parse_import_lines(text: str, category: StockCategory | str) -> ImportParseResult:
    """
    Parse a block of import text for one stock category.

    Blank lines are ignored and do not count as skipped.
    """
    category = StockCategory(category)
    is_medical = category == StockCategory.MEDICAL

    drafts: list[StockItemDraft] = []
    skipped: list[int] = []

    rows = csv.reader(text.splitlines(), skipinitialspace=True)
    for line_number, row in enumerate(rows, start=1):
        parts = [part.strip() for part in row]
        if not any(parts):
            continue

        name = _field(parts, 0)
        item_type = _field(parts, 1)
        quantity = _parse_quantity(_field(parts, 2))
        batch_number = _field(parts, 5) if is_medical else None
        expiry_date = _parse_expiry(_field(parts, 6)) if is_medical else None

        if not name or not item_type or quantity < 0:
            skipped.append(line_number)
            continue
        if is_medical and (batch_number is None or expiry_date is None):
            skipped.append(line_number)
            continue

        drafts.append(
            StockItemDraft(
                name=name,
                item_type=item_type,
                quantity=quantity,
                description=_field(parts, 3),
                purchase_vendor=_field(parts, 4),
                stock_category=category,
                batch_number=batch_number,
                expiry_date=expiry_date,
            )
        )

    return ImportParseResult(drafts=tuple(drafts), skipped_lines=tuple(skipped))
