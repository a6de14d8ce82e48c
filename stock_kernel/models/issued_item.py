"""
Module: stock_kernel.models.issued_item
Responsibility: ORM persistence for stock handed out to a user (IssuedItem)
    and for the custody transfers of such stock between users (ItemTransfer).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - quantity_issued is positive and fixed at creation; it is exactly what
      the ledger credits back on return.
    - A row is either active (returned = false, return_date NULL) or
      returned (returned = true, return_date set) -- ck_issued_items_return_state.
    - Transfers are append-only: rows are inserted by TransferService and
      never updated or deleted by the kernel (a stock item delete cascades).

Failure modes:
    - IntegrityError if a write breaks the return-state pairing.

Audit relevance:
    IssuedItem rows are the custody record for stock outside the store.
    The request_id link is what makes a request display as "issued".
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString


class IssuedItem(TrackedBase):
    """A quantity of one stock item handed to one user."""

    __tablename__ = "issued_items"

    __table_args__ = (
        CheckConstraint("quantity_issued > 0", name="ck_issued_items_quantity_positive"),
        CheckConstraint(
            "(NOT returned AND return_date IS NULL) OR (returned AND return_date IS NOT NULL)",
            name="ck_issued_items_return_state",
        ),
        Index("idx_issued_items_user_id", "user_id"),
        Index("idx_issued_items_item_id", "item_id"),
        Index("idx_issued_items_request_id", "request_id"),
        Index("idx_issued_items_returned", "returned"),
    )

    item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_items.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Current holder; changes on transfer
    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    request_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("requests.id", ondelete="SET NULL"),
        nullable=True,
    )

    quantity_issued: Mapped[int] = mapped_column(Integer, nullable=False)

    issued_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    return_due: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    returned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    return_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Organisation or person the items were handed to, as written on the slip
    issued_to: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        state = "returned" if self.returned else "active"
        return f"<IssuedItem {self.id} x{self.quantity_issued} {state}>"


class ItemTransfer(TrackedBase):
    """Audit row for a custody change of an active issued item."""

    __tablename__ = "item_transfers"

    __table_args__ = (
        Index("idx_item_transfers_issued_item_id", "issued_item_id"),
        Index("idx_item_transfers_from_user_id", "from_user_id"),
        Index("idx_item_transfers_to_user_id", "to_user_id"),
    )

    issued_item_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("issued_items.id", ondelete="CASCADE"),
        nullable=False,
    )

    from_user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    to_user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    transfer_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
