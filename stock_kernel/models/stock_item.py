"""
Module: stock_kernel.models.stock_item
Responsibility: ORM persistence for pooled inventory -- general and medical
    stock items with an authoritative on-hand quantity.
Architecture position: Kernel > Models.  May import from db/ only.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - quantity is never negative (ck_stock_items_quantity_nonnegative).
    - quantity is written only by services.stock_ledger.StockLedger; the
      catalogue service creates rows with quantity 0 and routes any opening
      balance through a ledger restock.
    - stock_category and unit_type are closed vocabularies (CHECK constraints).
    - Medical items carry batch_number and expiry_date (enforced by the
      catalogue service, not the ORM, so legacy rows still load).

Failure modes:
    - IntegrityError on a write that would make quantity negative.  The
      ledger never issues such a write (its conditional UPDATE matches no
      row instead), so seeing this error means something bypassed it.

Audit relevance:
    Every change to quantity is mirrored by an audit row: PurchaseHistory
    for restocks, DiscardedItem for discards, IssuedItem for issuance and
    returns, and the approving request for approval deductions.
"""

from datetime import date
from enum import Enum

from sqlalchemy import CheckConstraint, Date, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase


class StockCategory(str, Enum):
    """Top-level stock classification."""

    GENERAL = "general"
    MEDICAL = "medical"


class UnitType(str, Enum):
    """Unit the quantity is counted in."""

    BOX = "box"
    PCS = "pcs"


class StockItem(TrackedBase):
    """
    A unit of pooled inventory.

    Contract:
        ``quantity`` is the number of units physically on hand (issued
        units are already deducted).  Only the stock ledger changes it.
    """

    __tablename__ = "stock_items"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_stock_items_quantity_nonnegative"),
        CheckConstraint(
            "stock_category IN ('general', 'medical')",
            name="ck_stock_items_category",
        ),
        CheckConstraint("unit_type IN ('box', 'pcs')", name="ck_stock_items_unit_type"),
        Index("idx_stock_items_stock_category", "stock_category"),
        Index("idx_stock_items_expiry_date", "expiry_date"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Free-text grouping shown in the catalogue ("Gloves", "Cables", ...)
    item_type: Mapped[str] = mapped_column("type", String(100), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    stock_category: Mapped[StockCategory] = mapped_column(
        String(20),
        nullable=False,
        default=StockCategory.GENERAL,
    )

    # Medical stock only
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    unit_type: Mapped[UnitType] = mapped_column(
        String(10),
        nullable=False,
        default=UnitType.PCS,
    )

    # Primary vendor recorded when the item was set up
    purchase_vendor: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def is_medical(self) -> bool:
        return self.stock_category == StockCategory.MEDICAL

    def __repr__(self) -> str:
        return f"<StockItem {self.name} ({self.quantity} {self.unit_type})>"
