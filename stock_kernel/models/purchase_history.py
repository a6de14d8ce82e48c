"""
Module: stock_kernel.models.purchase_history
Responsibility: Append-only audit of restock events.

Rows are supplementary.  A restock whose history row cannot be written
still stands; see StockLedger.restock.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString


class PurchaseHistory(TrackedBase):
    """One restock of a stock item."""

    __tablename__ = "purchase_history"

    __table_args__ = (
        CheckConstraint("quantity_added > 0", name="ck_purchase_history_quantity_positive"),
        Index("idx_purchase_history_item_id", "item_id"),
        Index("idx_purchase_history_purchase_date", "purchase_date"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id", ondelete="CASCADE"),
        nullable=False,
    )

    purchase_vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)

    quantity_added: Mapped[int] = mapped_column(Integer, nullable=False)

    purchase_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
