"""
TransferService -- custody changes of issued items and stock write-offs.

transfer():
    Moves an active issued item from its current holder to another user
    and appends an ItemTransfer row.  No stock effect: the units stay
    issued, only the holder changes.

    Rules, checked in this order before any write:
        1. the issued item exists                  IssuedItemNotFoundError
        2. it has not been returned                ItemAlreadyReturnedError
        3. from_user_id is the current holder      NotItemHolderError
        4. the actor is the holder or an admin     PermissionDeniedError
        5. to_user_id differs and exists           InvalidFieldError / UserNotFoundError

discard_stock():
    Admin write-off, delegated to StockLedger.discard.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from stock_kernel.db.types import ensure_utc
from stock_kernel.domain.actor import ActorContext
from stock_kernel.exceptions import (
    IssuedItemNotFoundError,
    InvalidFieldError,
    ItemAlreadyReturnedError,
    NotItemHolderError,
    PermissionDeniedError,
    UserNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.discarded_item import DiscardReason
from stock_kernel.models.issued_item import IssuedItem, ItemTransfer
from stock_kernel.models.user import User
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_ledger import DiscardRecord, StockLedger

logger = get_logger("services.transfers")


@dataclass(frozen=True)
class TransferInfo:
    """Immutable DTO for a transfer audit row."""

    id: UUID
    issued_item_id: UUID
    from_user_id: UUID
    to_user_id: UUID
    transfer_date: datetime
    notes: str | None


def to_transfer_info(row: ItemTransfer) -> TransferInfo:
    return TransferInfo(
        id=row.id,
        issued_item_id=row.issued_item_id,
        from_user_id=row.from_user_id,
        to_user_id=row.to_user_id,
        transfer_date=ensure_utc(row.transfer_date),
        notes=row.notes,
    )


class TransferService(BaseService[ItemTransfer]):
    """Custody transfer of issued items and discard of stock."""

    def __init__(self, session, clock=None, ledger: StockLedger | None = None):
        super().__init__(session, clock)
        self._ledger = ledger or StockLedger(session, self.clock)

    def transfer(
        self,
        actor: ActorContext,
        issued_item_id: UUID,
        from_user_id: UUID,
        to_user_id: UUID,
        notes: str | None = None,
    ) -> TransferInfo:
        """
        Reassign an active issued item to ``to_user_id``.

        Raises:
            IssuedItemNotFoundError, ItemAlreadyReturnedError,
            NotItemHolderError, PermissionDeniedError, InvalidFieldError,
            UserNotFoundError.
        """
        row = self.session.execute(
            select(IssuedItem)
            .where(IssuedItem.id == issued_item_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if row is None:
            raise IssuedItemNotFoundError(str(issued_item_id))
        if row.returned:
            raise ItemAlreadyReturnedError(str(issued_item_id), action="transfer")
        if row.user_id != from_user_id:
            raise NotItemHolderError(str(issued_item_id), str(from_user_id), str(row.user_id))
        if actor.user_id != row.user_id and not actor.is_admin:
            raise PermissionDeniedError(str(actor.user_id), "transfer items held by another user")
        if to_user_id == from_user_id:
            raise InvalidFieldError("to_user_id", "cannot transfer an item to its current holder")
        if self.session.get(User, to_user_id) is None:
            raise UserNotFoundError(str(to_user_id))

        now = self.clock.now()
        row.user_id = to_user_id
        row.updated_by_id = actor.user_id
        transfer = ItemTransfer(
            issued_item_id=issued_item_id,
            from_user_id=from_user_id,
            to_user_id=to_user_id,
            transfer_date=now,
            notes=notes,
            created_by_id=actor.user_id,
        )
        self.session.add(transfer)
        self.session.flush()

        logger.info(
            "item_transferred",
            extra={
                "issued_item_id": str(issued_item_id),
                "from_user_id": str(from_user_id),
                "to_user_id": str(to_user_id),
            },
        )
        return to_transfer_info(transfer)

    def discard_stock(
        self,
        actor: ActorContext,
        item_id: UUID,
        quantity: int,
        reason: DiscardReason | str,
        notes: str | None = None,
    ) -> DiscardRecord:
        """
        Write off ``quantity`` units of a stock item.

        Raises:
            PermissionDeniedError, InvalidQuantityError,
            InvalidDiscardReasonError, StockItemNotFoundError,
            InsufficientStockError.
        """
        actor.require_admin("discard stock")
        return self._ledger.discard(item_id, quantity, reason, actor.user_id, notes)
