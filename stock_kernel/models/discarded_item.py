"""
Module: stock_kernel.models.discarded_item
Responsibility: Audit rows for stock removed as damaged, broken or expired.

A row is written in the same unit of work as the ledger deduction that
removes the units; the two commit or roll back together.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString


class DiscardReason(str, Enum):
    """Why stock was written off."""

    DAMAGED = "damaged"
    BROKEN = "broken"
    EXPIRED = "expired"


class DiscardedItem(TrackedBase):
    """Quantity written off from a stock item."""

    __tablename__ = "discarded_items"

    __table_args__ = (
        CheckConstraint(
            "quantity_discarded > 0", name="ck_discarded_items_quantity_positive"
        ),
        CheckConstraint(
            "reason IN ('damaged', 'broken', 'expired')",
            name="ck_discarded_items_reason",
        ),
        Index("idx_discarded_items_item_id", "item_id"),
        Index("idx_discarded_items_discarded_by", "discarded_by"),
        Index("idx_discarded_items_reason", "reason"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id", ondelete="CASCADE"),
        nullable=False,
    )

    quantity_discarded: Mapped[int] = mapped_column(Integer, nullable=False)

    reason: Mapped[DiscardReason] = mapped_column(String(20), nullable=False)

    discarded_by: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    discarded_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
