"""
Module: stock_kernel.selectors.request_selector
Responsibility: Request listings with requester details and the derived
    issued flag.
Architecture position: Kernel > Selectors.

Status filters accept the stored statuses and ``"issued"``.  As on the
admin screen, ``"approved"`` matches every approved request, issued or
not; ``"issued"`` matches approved requests with at least one issued item.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, func, select

from stock_kernel.db.types import ensure_utc
from stock_kernel.domain.values import RequestLine
from stock_kernel.exceptions import InvalidFieldError, RequestNotFoundError
from stock_kernel.models.issued_item import IssuedItem
from stock_kernel.models.request import (
    ISSUED_DISPLAY_STATUS,
    Request,
    RequestStatus,
    derive_display_status,
)
from stock_kernel.models.user import User
from stock_kernel.selectors.base import BaseSelector

_STATUS_FILTERS = frozenset(s.value for s in RequestStatus) | {ISSUED_DISPLAY_STATUS}


@dataclass(frozen=True)
class RequestRow:
    id: UUID
    user_id: UUID
    requester_name: str
    requester_email: str
    lines: tuple[RequestLine, ...]
    status: RequestStatus
    admin_notes: str | None
    created_at: datetime | None
    decided_at: datetime | None
    is_issued: bool

    @property
    def display_status(self) -> str:
        return derive_display_status(self.status, self.is_issued)


class RequestSelector(BaseSelector[Request]):
    """Read-only request queries, newest first."""

    def _issued_clause(self):
        return exists().where(IssuedItem.request_id == Request.id)

    def _rows(self, *criteria) -> list[RequestRow]:
        stmt = (
            select(
                Request,
                User.name,
                User.email,
                self._issued_clause().label("is_issued"),
            )
            .join(User, User.id == Request.user_id)
            .where(*criteria)
            .order_by(Request.created_at.desc(), Request.id)
        )
        return [
            RequestRow(
                id=request.id,
                user_id=request.user_id,
                requester_name=name,
                requester_email=email,
                lines=request.lines,
                status=RequestStatus(request.status),
                admin_notes=request.admin_notes,
                created_at=ensure_utc(request.created_at),
                decided_at=ensure_utc(request.decided_at),
                is_issued=bool(issued),
            )
            for request, name, email, issued in self.session.execute(stmt).all()
        ]

    def list_requests(self, status: str | None = None) -> list[RequestRow]:
        """
        Raises:
            InvalidFieldError: ``status`` is not pending, approved,
                rejected or issued.
        """
        if status is None:
            return self._rows()
        if status not in _STATUS_FILTERS:
            raise InvalidFieldError(
                "status", f"must be one of {', '.join(sorted(_STATUS_FILTERS))}"
            )
        if status == ISSUED_DISPLAY_STATUS:
            return self._rows(
                Request.status == RequestStatus.APPROVED.value,
                self._issued_clause(),
            )
        return self._rows(Request.status == status)

    def for_user(self, user_id: UUID) -> list[RequestRow]:
        """A user's own requests."""
        return self._rows(Request.user_id == user_id)

    def get(self, request_id: UUID) -> RequestRow:
        rows = self._rows(Request.id == request_id)
        if not rows:
            raise RequestNotFoundError(str(request_id))
        return rows[0]

    def pending_count(self) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(Request)
            .where(Request.status == RequestStatus.PENDING.value)
        ).scalar_one()
