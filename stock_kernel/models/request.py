"""
Module: stock_kernel.models.request
Responsibility: ORM persistence for a user's request for stock.
Architecture position: Kernel > Models.  May import from db/ and domain/ values.

Invariants enforced:
    - status moves one way: pending -> approved or pending -> rejected.
      Enforced by services.request_workflow; the CHECK constraint only
      keeps the vocabulary closed.
    - items (the ordered line list) may change only while pending.
    - "Issued" is not a status.  It is derived from the existence of
      issued_items rows that reference the request.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import TrackedBase, UUIDString
from stock_kernel.domain.values import RequestLine, lines_from_json


class RequestStatus(str, Enum):
    """Request lifecycle status."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# Label shown for an approved request once items have been issued against it
ISSUED_DISPLAY_STATUS = "issued"


def derive_display_status(status: RequestStatus | str, issued: bool) -> str:
    """Stored status, or ``"issued"`` for an approved request with issued items."""
    status = RequestStatus(status)
    if status == RequestStatus.APPROVED and issued:
        return ISSUED_DISPLAY_STATUS
    return status.value


class Request(TrackedBase):
    """A user's ask for a set of (item, quantity) lines."""

    __tablename__ = "requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_requests_status",
        ),
        Index("idx_requests_user_id", "user_id"),
        Index("idx_requests_status", "status"),
    )

    user_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    # [{"item_id": "...", "item_name": "...", "quantity": 3}, ...]
    items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    status: Mapped[RequestStatus] = mapped_column(
        String(20),
        nullable=False,
        default=RequestStatus.PENDING,
    )

    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Admin who approved or rejected, and when
    approved_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def lines(self) -> tuple[RequestLine, ...]:
        return lines_from_json(self.items)

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

    def __repr__(self) -> str:
        return f"<Request {self.id} {self.status} ({len(self.items or [])} lines)>"
