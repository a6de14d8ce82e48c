"""
Module: stock_kernel.selectors.stock_selector
Responsibility: Catalogue queries -- stock listing with outstanding issued
    quantities, type lists, low-stock and expiry views.
Architecture position: Kernel > Selectors.

``quantity`` is the on-hand count: units out on loan were deducted at
approval.  ``issued_quantity`` (units issued and not yet returned) is
reported alongside for information and is never subtracted again.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.exceptions import StockItemNotFoundError
from stock_kernel.models.issued_item import IssuedItem
from stock_kernel.models.stock_item import StockCategory, StockItem, UnitType
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StockRow:
    """One catalogue line."""

    id: UUID
    name: str
    item_type: str
    quantity: int
    issued_quantity: int
    description: str | None
    stock_category: StockCategory
    batch_number: str | None
    expiry_date: date | None
    unit_type: UnitType
    purchase_vendor: str | None

    @property
    def available_quantity(self) -> int:
        return self.quantity


class StockSelector(BaseSelector[StockItem]):
    """Read-only catalogue queries."""

    def _outstanding(self):
        return (
            select(
                IssuedItem.item_id.label("item_id"),
                func.sum(IssuedItem.quantity_issued).label("issued_quantity"),
            )
            .where(IssuedItem.returned.is_(False))
            .group_by(IssuedItem.item_id)
            .subquery()
        )

    def _rows(self, *criteria, order_by=None) -> list[StockRow]:
        outstanding = self._outstanding()
        stmt = (
            select(
                StockItem,
                func.coalesce(outstanding.c.issued_quantity, 0).label("issued_quantity"),
            )
            .outerjoin(outstanding, outstanding.c.item_id == StockItem.id)
            .where(*criteria)
            .order_by(*(order_by or (StockItem.name, StockItem.id)))
        )
        return [
            StockRow(
                id=item.id,
                name=item.name,
                item_type=item.item_type,
                quantity=item.quantity,
                issued_quantity=int(issued),
                description=item.description,
                stock_category=StockCategory(item.stock_category),
                batch_number=item.batch_number,
                expiry_date=item.expiry_date,
                unit_type=UnitType(item.unit_type),
                purchase_vendor=item.purchase_vendor,
            )
            for item, issued in self.session.execute(stmt).all()
        ]

    def list_items(
        self,
        category: StockCategory | str | None = None,
        item_type: str | None = None,
        search: str | None = None,
        low_stock_threshold: int | None = None,
    ) -> list[StockRow]:
        """
        Catalogue listing ordered by name.

        Args:
            category: Restrict to general or medical stock.
            item_type: Exact match on the free-text type.
            search: Case-insensitive substring of name, type or description.
            low_stock_threshold: Only items with quantity <= this value.
        """
        criteria = []
        if category is not None:
            criteria.append(StockItem.stock_category == StockCategory(category).value)
        if item_type:
            criteria.append(StockItem.item_type == item_type)
        if search:
            pattern = f"%{search.lower()}%"
            criteria.append(
                func.lower(StockItem.name).like(pattern)
                | func.lower(StockItem.item_type).like(pattern)
                | func.lower(func.coalesce(StockItem.description, "")).like(pattern)
            )
        if low_stock_threshold is not None:
            criteria.append(StockItem.quantity <= low_stock_threshold)
        return self._rows(*criteria)

    def get(self, item_id: UUID) -> StockRow:
        rows = self._rows(StockItem.id == item_id)
        if not rows:
            raise StockItemNotFoundError(str(item_id))
        return rows[0]

    def available_quantity(self, item_id: UUID) -> int:
        quantity = self.session.execute(
            select(StockItem.quantity).where(StockItem.id == item_id)
        ).scalar_one_or_none()
        if quantity is None:
            raise StockItemNotFoundError(str(item_id))
        return quantity

    def item_types(self, category: StockCategory | str | None = None) -> list[str]:
        """Distinct item types, sorted."""
        stmt = select(StockItem.item_type).distinct().order_by(StockItem.item_type)
        if category is not None:
            stmt = stmt.where(StockItem.stock_category == StockCategory(category).value)
        return list(self.session.execute(stmt).scalars())

    def near_expiry(self, today: date, window_days: int = 30) -> list[StockRow]:
        """Medical items expiring between today and today + window_days, soonest first."""
        return self._rows(
            StockItem.stock_category == StockCategory.MEDICAL.value,
            StockItem.expiry_date.is_not(None),
            StockItem.expiry_date >= today,
            StockItem.expiry_date <= today + timedelta(days=window_days),
            order_by=(StockItem.expiry_date, StockItem.name),
        )

    def expired(self, today: date) -> list[StockRow]:
        """Medical items whose expiry date is before today."""
        return self._rows(
            StockItem.stock_category == StockCategory.MEDICAL.value,
            StockItem.expiry_date.is_not(None),
            StockItem.expiry_date < today,
            order_by=(StockItem.expiry_date, StockItem.name),
        )
