"""
Module: stock_kernel.models.asset
Responsibility: Register of individually tracked durable goods.

Assets are not pooled stock and never pass through the ledger.  Status
moves active -> discarded exactly once; AssetService enforces that.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class AssetStatus(str, Enum):
    ACTIVE = "active"
    DISCARDED = "discarded"


class Asset(TrackedBase):
    """One registered asset."""

    __tablename__ = "assets"

    __table_args__ = (
        UniqueConstraint("item_number", name="uq_assets_item_number"),
        CheckConstraint("status IN ('active', 'discarded')", name="ck_assets_status"),
        CheckConstraint("purchase_price >= 0", name="ck_assets_purchase_price"),
        Index("idx_assets_status", "status"),
    )

    item_number: Mapped[str] = mapped_column(String(100), nullable=False)

    item_name: Mapped[str] = mapped_column(String(255), nullable=False)

    item_type: Mapped[str] = mapped_column(String(100), nullable=False)

    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)

    purchase_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    current_location: Mapped[str] = mapped_column(String(255), nullable=False)

    status: Mapped[AssetStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AssetStatus.ACTIVE,
    )

    discard_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    discard_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_active(self) -> bool:
        return self.status == AssetStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Asset {self.item_number}: {self.item_name} ({self.status})>"
