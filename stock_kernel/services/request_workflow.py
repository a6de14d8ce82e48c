"""
RequestWorkflow -- lifecycle of a user's request for stock.

Responsibility:
    Submission, line edits, approval (with the stock deduction) and
    rejection of requests, plus the derived "issued" flag.

Architecture position:
    Kernel > Services -- imperative shell.  Uses StockLedger for the
    approval deduction; IssuanceService consumes approved requests.

State machine:

    pending --approve--> approved      (stock deducted, terminal)
    pending --reject---> rejected      (no stock effect, terminal)

    "issued" is never stored.  It is displayed for an approved request
    once at least one issued_items row references it.

Invariants enforced:
    - Transitions only leave ``pending``; edits only happen while pending.
    - Approval deducts every line or none: the ledger deduction and the
      status write share one SAVEPOINT and the request row is locked, so
      concurrent approvals of the same request serialize and the second
      sees ``approved``.
    - No stock is reserved at submission.  Two pending requests may ask
      for the same scarce item; whichever is approved first gets it and
      the other fails with InsufficientStockError.

Failure modes:
    - RequestNotFoundError, RequestNotPendingError, EmptyRequestError,
      InvalidQuantityError, StockItemNotFoundError, InsufficientStockError,
      PermissionDeniedError.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, select

from stock_kernel.db.types import ensure_utc
from stock_kernel.domain.actor import ActorContext
from stock_kernel.domain.values import RequestLine, lines_to_json, validate_lines
from stock_kernel.exceptions import (
    RequestNotFoundError,
    RequestNotPendingError,
    StockItemNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.issued_item import IssuedItem
from stock_kernel.models.request import Request, RequestStatus, derive_display_status
from stock_kernel.models.stock_item import StockItem
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.requests")


@dataclass(frozen=True)
class RequestInfo:
    """Immutable DTO for a request."""

    id: UUID
    user_id: UUID
    lines: tuple[RequestLine, ...]
    status: RequestStatus
    admin_notes: str | None
    approved_by_id: UUID | None
    decided_at: datetime | None
    created_at: datetime | None
    is_issued: bool

    @property
    def display_status(self) -> str:
        return derive_display_status(self.status, self.is_issued)

    @property
    def total_quantity(self) -> int:
        return sum(line.quantity for line in self.lines)


def request_exists_issued(request_id_column):
    """EXISTS clause: at least one issued item references the request."""
    return exists().where(IssuedItem.request_id == request_id_column)


class RequestWorkflow(BaseService[Request]):
    """Moves requests through pending -> approved / rejected."""

    def __init__(self, session, clock=None, ledger: StockLedger | None = None):
        super().__init__(session, clock)
        self._ledger = ledger or StockLedger(session, self.clock)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _get_by_id(self, request_id: UUID, lock: bool = False) -> Request:
        stmt = select(Request).where(Request.id == request_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        request = self.session.execute(stmt).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request

    def _to_dto(self, request: Request) -> RequestInfo:
        return RequestInfo(
            id=request.id,
            user_id=request.user_id,
            lines=request.lines,
            status=RequestStatus(request.status),
            admin_notes=request.admin_notes,
            approved_by_id=request.approved_by_id,
            decided_at=ensure_utc(request.decided_at),
            created_at=ensure_utc(request.created_at),
            is_issued=self.is_issued(request.id),
        )

    def _require_pending(self, request: Request, action: str) -> None:
        if request.status != RequestStatus.PENDING:
            raise RequestNotPendingError(str(request.id), request.status, action)

    def _snapshot_lines(self, lines: Sequence[RequestLine]) -> tuple[RequestLine, ...]:
        """Attach the current item name to each line; every item must exist."""
        item_ids = {line.item_id for line in lines}
        names = dict(
            self.session.execute(
                select(StockItem.id, StockItem.name).where(StockItem.id.in_(item_ids))
            ).all()
        )
        snapshot = []
        for line in lines:
            if line.item_id not in names:
                raise StockItemNotFoundError(str(line.item_id))
            snapshot.append(
                RequestLine(item_id=line.item_id, quantity=line.quantity, item_name=names[line.item_id])
            )
        return tuple(snapshot)

    def get(self, request_id: UUID) -> RequestInfo:
        return self._to_dto(self._get_by_id(request_id))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def submit(self, actor: ActorContext, lines: Iterable[RequestLine]) -> RequestInfo:
        """
        Create a pending request for ``actor``.

        Availability is not checked here; it is checked at approval.

        Raises:
            EmptyRequestError, InvalidQuantityError, StockItemNotFoundError.
        """
        checked = validate_lines(lines)
        snapshot = self._snapshot_lines(checked)

        request = Request(
            user_id=actor.user_id,
            items=lines_to_json(snapshot),
            status=RequestStatus.PENDING.value,
            created_by_id=actor.user_id,
        )
        self.session.add(request)
        self.session.flush()

        logger.info(
            "request_submitted",
            extra={
                "request_id": str(request.id),
                "line_count": len(snapshot),
                "total_quantity": sum(line.quantity for line in snapshot),
            },
        )
        return self._to_dto(request)

    def edit_lines(
        self,
        actor: ActorContext,
        request_id: UUID,
        new_lines: Iterable[RequestLine],
    ) -> RequestInfo:
        """
        Replace the lines of a pending request.

        To drop every line, reject the request instead.

        Raises:
            PermissionDeniedError, EmptyRequestError, InvalidQuantityError,
            RequestNotFoundError, RequestNotPendingError, StockItemNotFoundError.
        """
        actor.require_admin("edit requests")
        checked = validate_lines(new_lines)

        request = self._get_by_id(request_id, lock=True)
        self._require_pending(request, "edit")
        snapshot = self._snapshot_lines(checked)

        request.items = lines_to_json(snapshot)
        request.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "request_lines_edited",
            extra={"request_id": str(request_id), "line_count": len(snapshot)},
        )
        return self._to_dto(request)

    def approve(
        self,
        actor: ActorContext,
        request_id: UUID,
        notes: str | None = None,
        override_lines: Iterable[RequestLine] | None = None,
    ) -> RequestInfo:
        """
        Approve a pending request and deduct its stock.

        ``override_lines``, when given, replace the stored lines and are
        what gets deducted.

        Postconditions:
            - On success: every line deducted, status approved,
              approved_by_id/decided_at recorded.
            - On failure: no stock changed, request still pending.

        Raises:
            PermissionDeniedError, RequestNotFoundError, RequestNotPendingError,
            EmptyRequestError, InvalidQuantityError, StockItemNotFoundError,
            InsufficientStockError (names the first line that cannot be met).
        """
        actor.require_admin("approve requests")
        override = validate_lines(override_lines) if override_lines is not None else None

        request = self._get_by_id(request_id, lock=True)
        self._require_pending(request, "approve")
        lines = self._snapshot_lines(override) if override is not None else request.lines

        with self.session.begin_nested():
            self._ledger.deduct_lines(lines, actor.user_id)

            request.status = RequestStatus.APPROVED.value
            request.admin_notes = notes
            request.approved_by_id = actor.user_id
            request.decided_at = self.clock.now()
            request.updated_by_id = actor.user_id
            if override is not None:
                request.items = lines_to_json(lines)
            self.session.flush()

        logger.info(
            "request_approved",
            extra={
                "request_id": str(request_id),
                "line_count": len(lines),
                "overridden": override is not None,
            },
        )
        return self._to_dto(request)

    def reject(
        self,
        actor: ActorContext,
        request_id: UUID,
        notes: str | None = None,
    ) -> RequestInfo:
        """
        Reject a pending request.  No stock effect.

        Raises:
            PermissionDeniedError, RequestNotFoundError, RequestNotPendingError.
        """
        actor.require_admin("reject requests")
        request = self._get_by_id(request_id, lock=True)
        self._require_pending(request, "reject")

        request.status = RequestStatus.REJECTED.value
        request.admin_notes = notes
        request.approved_by_id = actor.user_id
        request.decided_at = self.clock.now()
        request.updated_by_id = actor.user_id
        self.session.flush()

        logger.info("request_rejected", extra={"request_id": str(request_id)})
        return self._to_dto(request)

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def is_issued(self, request_id: UUID) -> bool:
        """True iff at least one issued item references the request."""
        return bool(
            self.session.execute(select(request_exists_issued(request_id))).scalar()
        )

    def display_status(self, request_id: UUID) -> str:
        """``pending``, ``approved``, ``rejected`` or ``issued``."""
        request = self._get_by_id(request_id)
        return derive_display_status(request.status, self.is_issued(request_id))
