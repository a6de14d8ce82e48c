"""
IssuanceService -- handing approved stock to users and taking it back.

Responsibility:
    Creates IssuedItem rows for an approved request and records returns,
    crediting the returned quantity back through the StockLedger.

Architecture position:
    Kernel > Services -- imperative shell.

Invariants enforced:
    - Issuing does not touch stock: it was deducted at approval.
    - A request is issued at most once, and only when approved.
    - A return flips ``returned`` and sets ``return_date`` exactly once and
      credits exactly ``quantity_issued``; the flip and the credit share
      one SAVEPOINT, and the issued row is locked so two concurrent returns
      cannot both credit.

Failure modes:
    - PermissionDeniedError, InvalidReturnPeriodError,
      RequestNotFoundError, RequestNotApprovedError,
      RequestAlreadyIssuedError, IssuedItemNotFoundError,
      ItemAlreadyReturnedError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from stock_kernel.db.types import ensure_utc
from stock_kernel.domain.actor import ActorContext
from stock_kernel.domain.due_dates import (
    days_overdue,
    is_overdue,
    issuance_status,
    return_due_date,
    validate_return_period,
)
from stock_kernel.exceptions import (
    IssuedItemNotFoundError,
    ItemAlreadyReturnedError,
    RequestAlreadyIssuedError,
    RequestNotApprovedError,
    RequestNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.issued_item import IssuedItem
from stock_kernel.models.request import Request, RequestStatus
from stock_kernel.services.base import BaseService
from stock_kernel.services.request_workflow import request_exists_issued
from stock_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.issuance")


@dataclass(frozen=True)
class IssuedItemInfo:
    """Immutable DTO for an issued item, with overdue state as of ``as_of``."""

    id: UUID
    item_id: UUID
    user_id: UUID
    request_id: UUID | None
    quantity_issued: int
    issued_date: datetime
    return_due: datetime
    returned: bool
    return_date: datetime | None
    admin_notes: str | None
    issued_to: str | None
    as_of: datetime

    @property
    def is_overdue(self) -> bool:
        return is_overdue(self.as_of, self.return_due, self.returned)

    @property
    def days_overdue(self) -> int:
        return days_overdue(self.as_of, self.return_due, self.returned)

    @property
    def status(self) -> str:
        return issuance_status(self.as_of, self.return_due, self.returned)


def to_issued_item_info(row: IssuedItem, as_of: datetime) -> IssuedItemInfo:
    return IssuedItemInfo(
        id=row.id,
        item_id=row.item_id,
        user_id=row.user_id,
        request_id=row.request_id,
        quantity_issued=row.quantity_issued,
        issued_date=ensure_utc(row.issued_date),
        return_due=ensure_utc(row.return_due),
        returned=row.returned,
        return_date=ensure_utc(row.return_date),
        admin_notes=row.admin_notes,
        issued_to=row.issued_to,
        as_of=as_of,
    )


class IssuanceService(BaseService[IssuedItem]):
    """Issues approved requests and records returns."""

    def __init__(self, session, clock=None, ledger: StockLedger | None = None):
        super().__init__(session, clock)
        self._ledger = ledger or StockLedger(session, self.clock)

    def _get_by_id(self, issued_item_id: UUID, lock: bool = False) -> IssuedItem:
        stmt = select(IssuedItem).where(IssuedItem.id == issued_item_id)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise IssuedItemNotFoundError(str(issued_item_id))
        return row

    def get(self, issued_item_id: UUID) -> IssuedItemInfo:
        return to_issued_item_info(self._get_by_id(issued_item_id), self.clock.now())

    def issue(
        self,
        actor: ActorContext,
        request_id: UUID,
        return_due_in_days: int,
        notes: str | None = None,
        issued_to: str | None = None,
    ) -> list[IssuedItemInfo]:
        """
        Create one issued item per line of an approved request.

        All rows share the same issue date and return-due date
        (now + ``return_due_in_days``).  The requester becomes the holder.

        Raises:
            PermissionDeniedError, InvalidReturnPeriodError,
            RequestNotFoundError, RequestNotApprovedError,
            RequestAlreadyIssuedError.
        """
        actor.require_admin("issue items")
        days = validate_return_period(return_due_in_days)

        request = self.session.execute(
            select(Request)
            .where(Request.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(str(request_id))
        if request.status != RequestStatus.APPROVED:
            raise RequestNotApprovedError(str(request_id), request.status)
        if self.session.execute(select(request_exists_issued(request_id))).scalar():
            raise RequestAlreadyIssuedError(str(request_id))

        now = self.clock.now()
        due = return_due_date(now, days)
        rows = [
            IssuedItem(
                item_id=line.item_id,
                user_id=request.user_id,
                request_id=request.id,
                quantity_issued=line.quantity,
                issued_date=now,
                return_due=due,
                returned=False,
                admin_notes=notes,
                issued_to=issued_to,
                created_by_id=actor.user_id,
            )
            for line in request.lines
        ]
        self.session.add_all(rows)
        self.session.flush()

        logger.info(
            "request_issued",
            extra={
                "request_id": str(request_id),
                "issued_count": len(rows),
                "return_due": due,
            },
        )
        return [to_issued_item_info(row, now) for row in rows]

    def mark_returned(
        self,
        actor: ActorContext,
        issued_item_id: UUID,
        notes: str | None = None,
    ) -> IssuedItemInfo:
        """
        Record the return of an issued item and credit its stock back.

        ``notes``, when given, replace the issued item's admin notes.

        Raises:
            PermissionDeniedError, IssuedItemNotFoundError,
            ItemAlreadyReturnedError, StockItemNotFoundError.
        """
        actor.require_admin("mark items returned")
        now = self.clock.now()

        with self.session.begin_nested():
            row = self._get_by_id(issued_item_id, lock=True)
            if row.returned:
                raise ItemAlreadyReturnedError(str(issued_item_id))

            row.returned = True
            row.return_date = now
            if notes is not None:
                row.admin_notes = notes
            row.updated_by_id = actor.user_id
            self.session.flush()

            new_quantity = self._ledger.credit(row.item_id, row.quantity_issued, actor.user_id)

        logger.info(
            "item_returned",
            extra={
                "issued_item_id": str(issued_item_id),
                "item_id": str(row.item_id),
                "quantity": row.quantity_issued,
                "new_quantity": new_quantity,
            },
        )
        return to_issued_item_info(row, now)
