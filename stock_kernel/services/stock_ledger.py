"""
StockLedger -- the single mutation point for StockItem.quantity.

Responsibility:
    Applies every quantity delta: restock (+), approval deduction (-),
    return credit (+) and discard (-).  Writes the matching audit rows
    for restocks (PurchaseHistory) and discards (DiscardedItem).

Architecture position:
    Kernel > Services -- imperative shell.  Called by RequestWorkflow
    (approval), IssuanceService (return), TransferService (discard) and
    StockItemService (opening balance / restock).

Invariants enforced:
    - quantity >= 0 at every committed point.  Every decrement is a single
      conditional ``UPDATE ... SET quantity = quantity - :n
      WHERE id = :id AND quantity >= :n``; a zero row count means the
      item is missing or short, and nothing was written.
    - Linearizable deltas per item: increments and decrements are
      computed by the database from the current row value, never from
      a value read earlier by Python.  ``deduct_lines`` additionally
      locks every involved row (``SELECT ... FOR UPDATE``, ordered by id)
      before checking, so the check and the deductions see the same
      quantities.
    - Approval atomicity: ``deduct_lines`` runs inside one SAVEPOINT; if
      any line fails, no line is deducted.
    - Restock audit asymmetry: the quantity increment must succeed; the
      PurchaseHistory append is attempted in its own SAVEPOINT and a
      store failure there is logged (``purchase_history_append_failed``)
      and swallowed.

Failure modes:
    - StockItemNotFoundError: item id does not exist.
    - InsufficientStockError: decrement larger than on-hand quantity.
    - InvalidQuantityError: non-positive quantity (raised before any write).
    - InvalidDiscardReasonError: reason outside damaged/broken/expired.

Audit relevance:
    Every quantity change logs an INFO event with item id, delta and the
    resulting quantity.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.util import identity_key

from stock_kernel.domain.values import RequestLine, require_positive_quantity
from stock_kernel.exceptions import (
    InsufficientStockError,
    InvalidDiscardReasonError,
    StockItemNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.discarded_item import DiscardedItem, DiscardReason
from stock_kernel.models.purchase_history import PurchaseHistory
from stock_kernel.models.stock_item import StockItem
from stock_kernel.services.base import BaseService

logger = get_logger("services.ledger")


@dataclass(frozen=True)
class DiscardRecord:
    """Result of a discard: the audit row and the remaining on-hand quantity."""

    id: UUID
    item_id: UUID
    quantity_discarded: int
    reason: DiscardReason
    discarded_by: UUID | None
    discarded_date: datetime
    remaining_quantity: int


def parse_discard_reason(reason: object) -> DiscardReason:
    """Return ``reason`` as a DiscardReason or raise InvalidDiscardReasonError."""
    try:
        return DiscardReason(reason)
    except ValueError:
        raise InvalidDiscardReasonError(
            reason, tuple(r.value for r in DiscardReason)
        ) from None


class StockLedger(BaseService[StockItem]):
    """Owns every write to ``StockItem.quantity``."""

    # ------------------------------------------------------------------
    # Increments
    # ------------------------------------------------------------------

    def restock(
        self,
        item_id: UUID,
        quantity_to_add: int,
        vendor: str | None,
        notes: str | None,
        actor_id: UUID,
    ) -> int:
        """
        Add units to a stock item and record the purchase.

        Postconditions:
            - quantity increased by ``quantity_to_add``.
            - One PurchaseHistory row, unless its insert failed (logged).

        Returns:
            The quantity after the increment.

        Raises:
            InvalidQuantityError: quantity_to_add is not a positive int.
            StockItemNotFoundError: item does not exist.
        """
        require_positive_quantity(quantity_to_add, "quantity_to_add")

        new_quantity = self._increment(item_id, quantity_to_add, actor_id)
        logger.info(
            "stock_restocked",
            extra={
                "item_id": str(item_id),
                "quantity_added": quantity_to_add,
                "new_quantity": new_quantity,
                "vendor": vendor,
            },
        )

        self._append_purchase_history(item_id, quantity_to_add, vendor, notes, actor_id)
        return new_quantity

    def credit(self, item_id: UUID, quantity: int, actor_id: UUID | None = None) -> int:
        """
        Add units back to a stock item (return of issued stock).

        No upper bound is checked; the units were deducted earlier.

        Raises:
            InvalidQuantityError, StockItemNotFoundError.
        """
        require_positive_quantity(quantity)
        new_quantity = self._increment(item_id, quantity, actor_id)
        logger.info(
            "stock_credited",
            extra={
                "item_id": str(item_id),
                "quantity": quantity,
                "new_quantity": new_quantity,
            },
        )
        return new_quantity

    # ------------------------------------------------------------------
    # Decrements
    # ------------------------------------------------------------------

    def deduct(self, item_id: UUID, quantity: int, actor_id: UUID | None = None) -> int:
        """
        Remove units from a stock item.

        Returns:
            The quantity after the decrement.

        Raises:
            InvalidQuantityError: quantity is not a positive int.
            StockItemNotFoundError: item does not exist.
            InsufficientStockError: quantity exceeds the on-hand quantity.
        """
        require_positive_quantity(quantity)

        values: dict = {"quantity": StockItem.quantity - quantity}
        if actor_id is not None:
            values["updated_by_id"] = actor_id

        # INVARIANT: quantity >= 0 -- the guard and the write are one statement
        result = self.session.execute(
            update(StockItem)
            .where(StockItem.id == item_id, StockItem.quantity >= quantity)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self._expire_quantity(item_id)

        if result.rowcount == 0:
            name, available = self._name_and_quantity(item_id)
            logger.warning(
                "stock_deduction_refused",
                extra={
                    "item_id": str(item_id),
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(str(item_id), name, quantity, available)

        new_quantity = self.current_quantity(item_id)
        logger.info(
            "stock_deducted",
            extra={
                "item_id": str(item_id),
                "quantity": quantity,
                "new_quantity": new_quantity,
            },
        )
        return new_quantity

    def deduct_lines(
        self,
        lines: Iterable[RequestLine],
        actor_id: UUID | None = None,
    ) -> dict[UUID, int]:
        """
        Deduct every line of an approval as one unit of work.

        All involved rows are locked first, then every line is checked in
        order against the locked quantities (cumulatively, so two lines
        for the same item are checked against their sum), and only then
        are the deductions applied.

        Postconditions:
            - On success every line is deducted.
            - On failure no line is deducted.

        Returns:
            Mapping of item id to its quantity after the deductions.

        Raises:
            StockItemNotFoundError: a line names a missing item.
            InsufficientStockError: the first line (in order) that cannot
                be satisfied; ``available`` is what remained for it.
        """
        checked = tuple(lines)
        for line in checked:
            require_positive_quantity(line.quantity)

        item_ids = sorted({line.item_id for line in checked}, key=str)

        with self.session.begin_nested():
            # Lock order by id so two approvals over the same items cannot deadlock
            rows = self.session.execute(
                select(StockItem.id, StockItem.name, StockItem.quantity)
                .where(StockItem.id.in_(item_ids))
                .order_by(StockItem.id)
                .with_for_update()
            ).all()
            on_hand = {row.id: (row.name, row.quantity) for row in rows}

            claimed: dict[UUID, int] = {}
            for line in checked:
                if line.item_id not in on_hand:
                    raise StockItemNotFoundError(str(line.item_id))
                name, quantity = on_hand[line.item_id]
                already = claimed.get(line.item_id, 0)
                if already + line.quantity > quantity:
                    logger.warning(
                        "approval_rejected_insufficient_stock",
                        extra={
                            "item_id": str(line.item_id),
                            "requested": line.quantity,
                            "available": quantity - already,
                        },
                    )
                    raise InsufficientStockError(
                        str(line.item_id), name, line.quantity, quantity - already
                    )
                claimed[line.item_id] = already + line.quantity

            remaining: dict[UUID, int] = {}
            for line in checked:
                remaining[line.item_id] = self.deduct(line.item_id, line.quantity, actor_id)

        return remaining

    def discard(
        self,
        item_id: UUID,
        quantity: int,
        reason: DiscardReason | str,
        by_user_id: UUID,
        notes: str | None = None,
    ) -> DiscardRecord:
        """
        Write off units of a stock item.

        The deduction and the DiscardedItem row share one SAVEPOINT.

        Raises:
            InvalidQuantityError, InvalidDiscardReasonError,
            StockItemNotFoundError, InsufficientStockError.
        """
        require_positive_quantity(quantity)
        discard_reason = parse_discard_reason(reason)
        now = self.clock.now()

        with self.session.begin_nested():
            remaining = self.deduct(item_id, quantity, by_user_id)
            record = DiscardedItem(
                item_id=item_id,
                quantity_discarded=quantity,
                reason=discard_reason.value,
                discarded_by=by_user_id,
                notes=notes,
                discarded_date=now,
                created_by_id=by_user_id,
            )
            self.session.add(record)
            self.session.flush()

        logger.info(
            "stock_discarded",
            extra={
                "item_id": str(item_id),
                "quantity": quantity,
                "reason": discard_reason.value,
                "new_quantity": remaining,
            },
        )
        return DiscardRecord(
            id=record.id,
            item_id=item_id,
            quantity_discarded=quantity,
            reason=discard_reason,
            discarded_by=by_user_id,
            discarded_date=now,
            remaining_quantity=remaining,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_quantity(self, item_id: UUID) -> int:
        """
        Raises:
            StockItemNotFoundError: item does not exist.
        """
        return self._name_and_quantity(item_id)[1]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _increment(self, item_id: UUID, quantity: int, actor_id: UUID | None) -> int:
        values: dict = {"quantity": StockItem.quantity + quantity}
        if actor_id is not None:
            values["updated_by_id"] = actor_id

        result = self.session.execute(
            update(StockItem)
            .where(StockItem.id == item_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self._expire_quantity(item_id)
        if result.rowcount == 0:
            raise StockItemNotFoundError(str(item_id))
        return self.current_quantity(item_id)

    def _append_purchase_history(
        self,
        item_id: UUID,
        quantity_added: int,
        vendor: str | None,
        notes: str | None,
        actor_id: UUID,
    ) -> None:
        try:
            with self.session.begin_nested():
                self.session.add(
                    PurchaseHistory(
                        item_id=item_id,
                        purchase_vendor=vendor,
                        quantity_added=quantity_added,
                        purchase_date=self.clock.now(),
                        notes=notes,
                        created_by_id=actor_id,
                    )
                )
                self.session.flush()
        except SQLAlchemyError:
            # Best-effort audit row: the increment above stands
            logger.warning(
                "purchase_history_append_failed",
                extra={"item_id": str(item_id), "quantity_added": quantity_added},
                exc_info=True,
            )

    def _name_and_quantity(self, item_id: UUID) -> tuple[str, int]:
        row = self.session.execute(
            select(StockItem.name, StockItem.quantity).where(StockItem.id == item_id)
        ).one_or_none()
        if row is None:
            raise StockItemNotFoundError(str(item_id))
        return row.name, row.quantity

    def _expire_quantity(self, item_id: UUID) -> None:
        """Drop a stale in-session quantity after a bulk UPDATE."""
        item = self.session.identity_map.get(identity_key(StockItem, item_id))
        if item is not None:
            self.session.expire(item, ["quantity", "updated_by_id", "updated_at"])
