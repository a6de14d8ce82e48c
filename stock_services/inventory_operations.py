"""
stock_services.inventory_operations -- Caller-facing entry point for the stock kernel.

Responsibility:
    One method per user-visible operation: catalogue maintenance,
    request submission and decisions, issuance and returns, transfers,
    discards, the asset register and the read-only listings and reports.
    Each method runs as a single transaction and returns DTOs, never ORM
    entities.

Architecture position:
    Services -- top of the stack.  Reads configuration through
    ``stock_config.get_active_config()`` and passes plain values (database
    URL, policy numbers) down to the kernel.

Invariants enforced:
    - One operation, one transaction: ``session_scope()`` commits on
      success and rolls back on any exception, so a failed operation
      leaves no partial writes.
    - Store failures never escape as SQLAlchemy exceptions; they are
      translated to StoreFailureError by ``store_errors()``.
    - Every operation binds a fresh correlation_id plus actor_id and
      operation name into LogContext, so all kernel log lines it produces
      can be joined.
    - Return periods respect the configured ``max_return_days`` in
      addition to the kernel's absolute 1..365 bound.

Failure modes:
    - Any StockKernelError raised by the kernel, after rollback.
    - StoreFailureError for database failures.
    - RuntimeError if the engine was reset underneath the instance.

Audit relevance:
    ``operation_started`` / ``operation_completed`` / ``operation_failed``
    bracket every call with its duration and error code.
"""

from __future__ import annotations

import time
from collections.abc import Generator, Iterable
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from stock_config import StockConfig, get_active_config
from stock_kernel.db.engine import (
    create_tables,
    drop_tables,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from stock_kernel.db.errors import store_errors
from stock_kernel.domain.actor import ActorContext, UserRole
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.due_dates import MIN_RETURN_DAYS, validate_return_period
from stock_kernel.domain.stock_import import StockItemDraft
from stock_kernel.domain.values import RequestLine
from stock_kernel.exceptions import InvalidReturnPeriodError, StockKernelError
from stock_kernel.logging_config import LogContext, configure_logging, get_logger
from stock_kernel.models.discarded_item import DiscardReason
from stock_kernel.models.stock_item import StockCategory
from stock_kernel.selectors.issuance_selector import IssuedRow, TransferRow
from stock_kernel.selectors.report_selector import (
    AssetRow,
    DiscardRow,
    ItemDetailReport,
    StockReport,
)
from stock_kernel.selectors.request_selector import RequestRow
from stock_kernel.selectors.stock_selector import StockRow
from stock_kernel.services.asset_service import AssetInfo
from stock_kernel.services.issuance_service import IssuedItemInfo
from stock_kernel.services.request_workflow import RequestInfo
from stock_kernel.services.stock_item_service import BulkImportResult, StockItemInfo
from stock_kernel.services.stock_ledger import DiscardRecord
from stock_kernel.services.transfer_service import TransferInfo
from stock_kernel.services.user_service import UserInfo
from stock_services.kernel_services import KernelServices

logger = get_logger("services.operations")


def _elapsed_ms(t0: float) -> float:
    return round((time.monotonic() - t0) * 1000, 2)


class InventoryOperations:
    """Transactional facade over the stock kernel.

    Contract:
        Construction initializes the module-level engine from
        ``config.database`` (and, unless ``setup_logging`` is False, the
        JSON log handler from ``config.logging``).  Every public method
        opens its own session scope.

    Non-goals:
        - Does NOT authenticate users; callers pass an ActorContext for
          the already-authenticated user.
        - Does NOT cache reads across calls.
    """

    def __init__(
        self,
        config: StockConfig | None = None,
        clock: Clock | None = None,
        *,
        setup_logging: bool = True,
    ) -> None:
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()

        if setup_logging:
            configure_logging(level=self._config.logging.level)

        database = self._config.database
        init_engine_from_url(
            database.url,
            echo=database.echo,
            pool_size=database.pool_size,
            max_overflow=database.max_overflow,
            pool_timeout=database.pool_timeout,
            pool_recycle=database.pool_recycle,
        )

    @property
    def config(self) -> StockConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_schema(self) -> None:
        create_tables()

    def drop_schema(self) -> None:
        drop_tables()

    def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        reset_engine()

    @contextmanager
    def _operation(
        self,
        operation: str,
        actor: ActorContext | None = None,
        **context: Any,
    ) -> Generator[KernelServices, None, None]:
        """Bind log context, translate store errors and scope one transaction."""
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=actor.user_id if actor is not None else None,
            operation=operation,
            **context,
        ):
            t0 = time.monotonic()
            logger.info("operation_started")
            try:
                with store_errors(), session_scope() as session:
                    yield KernelServices(session, self._clock)
            except StockKernelError as exc:
                logger.warning(
                    "operation_failed",
                    extra={
                        "error_code": exc.code,
                        "error_type": type(exc).__name__,
                        "duration_ms": _elapsed_ms(t0),
                    },
                )
                raise
            logger.info("operation_completed", extra={"duration_ms": _elapsed_ms(t0)})

    def _return_days(self, return_due_in_days: int | None) -> int:
        policy = self._config.inventory
        days = validate_return_period(
            policy.default_return_days if return_due_in_days is None else return_due_in_days
        )
        if days > policy.max_return_days:
            raise InvalidReturnPeriodError(days, MIN_RETURN_DAYS, policy.max_return_days)
        return days

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(
        self,
        name: str,
        email: str,
        role: UserRole | str = UserRole.GUEST,
        department: str | None = None,
    ) -> UserInfo:
        with self._operation("create_user") as kernel:
            return kernel.users.create(name, email, role, department)

    def get_user(self, user_id: UUID) -> UserInfo:
        with self._operation("get_user") as kernel:
            return kernel.users.get(user_id)

    def actor_for(self, user_id: UUID) -> ActorContext:
        """ActorContext for an existing user, with the role currently stored."""
        return self.get_user(user_id).as_actor()

    def change_user_role(
        self, actor: ActorContext, user_id: UUID, role: UserRole | str
    ) -> UserInfo:
        with self._operation("change_user_role", actor) as kernel:
            return kernel.users.change_role(actor, user_id, role)

    # ------------------------------------------------------------------
    # Stock catalogue
    # ------------------------------------------------------------------

    def create_stock_item(self, actor: ActorContext, draft: StockItemDraft) -> StockItemInfo:
        with self._operation("create_stock_item", actor) as kernel:
            return kernel.stock_items.create(actor, draft)

    def update_stock_item(
        self, actor: ActorContext, item_id: UUID, **changes: Any
    ) -> StockItemInfo:
        with self._operation("update_stock_item", actor, item_id=item_id) as kernel:
            return kernel.stock_items.update(actor, item_id, **changes)

    def delete_stock_item(self, actor: ActorContext, item_id: UUID) -> None:
        with self._operation("delete_stock_item", actor, item_id=item_id) as kernel:
            kernel.stock_items.delete(actor, item_id)

    def restock(
        self,
        actor: ActorContext,
        item_id: UUID,
        quantity_to_add: int,
        vendor: str | None = None,
        notes: str | None = None,
    ) -> int:
        """Add stock and record the purchase.  Returns the new on-hand quantity."""
        with self._operation("restock", actor, item_id=item_id) as kernel:
            return kernel.stock_items.restock(actor, item_id, quantity_to_add, vendor, notes)

    def bulk_import(
        self, actor: ActorContext, text: str, category: StockCategory | str
    ) -> BulkImportResult:
        with self._operation("bulk_import", actor) as kernel:
            return kernel.stock_items.bulk_import(actor, text, category)

    def discard_stock(
        self,
        actor: ActorContext,
        item_id: UUID,
        quantity: int,
        reason: DiscardReason | str,
        notes: str | None = None,
    ) -> DiscardRecord:
        with self._operation("discard_stock", actor, item_id=item_id) as kernel:
            return kernel.transfers.discard_stock(actor, item_id, quantity, reason, notes)

    def get_stock_item(self, item_id: UUID) -> StockRow:
        with self._operation("get_stock_item", item_id=item_id) as kernel:
            return kernel.stock_selector.get(item_id)

    def available_quantity(self, item_id: UUID) -> int:
        with self._operation("available_quantity", item_id=item_id) as kernel:
            return kernel.stock_selector.available_quantity(item_id)

    def list_stock(
        self,
        category: StockCategory | str | None = None,
        item_type: str | None = None,
        search: str | None = None,
        low_stock_only: bool = False,
    ) -> list[StockRow]:
        """Catalogue listing; ``low_stock_only`` applies the configured threshold."""
        threshold = self._config.inventory.low_stock_threshold if low_stock_only else None
        with self._operation("list_stock") as kernel:
            return kernel.stock_selector.list_items(
                category=category,
                item_type=item_type,
                search=search,
                low_stock_threshold=threshold,
            )

    def item_types(self, category: StockCategory | str | None = None) -> list[str]:
        with self._operation("item_types") as kernel:
            return kernel.stock_selector.item_types(category)

    def near_expiry_items(self, window_days: int | None = None) -> list[StockRow]:
        window = self._config.inventory.near_expiry_days if window_days is None else window_days
        with self._operation("near_expiry_items") as kernel:
            return kernel.stock_selector.near_expiry(self._clock.now().date(), window)

    def expired_items(self) -> list[StockRow]:
        with self._operation("expired_items") as kernel:
            return kernel.stock_selector.expired(self._clock.now().date())

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def submit_request(self, actor: ActorContext, lines: Iterable[RequestLine]) -> RequestInfo:
        with self._operation("submit_request", actor) as kernel:
            return kernel.requests.submit(actor, lines)

    def edit_request_lines(
        self, actor: ActorContext, request_id: UUID, lines: Iterable[RequestLine]
    ) -> RequestInfo:
        with self._operation("edit_request_lines", actor, request_id=request_id) as kernel:
            return kernel.requests.edit_lines(actor, request_id, lines)

    def approve_request(
        self,
        actor: ActorContext,
        request_id: UUID,
        notes: str | None = None,
        override_lines: Iterable[RequestLine] | None = None,
    ) -> RequestInfo:
        with self._operation("approve_request", actor, request_id=request_id) as kernel:
            return kernel.requests.approve(actor, request_id, notes, override_lines)

    def reject_request(
        self, actor: ActorContext, request_id: UUID, notes: str | None = None
    ) -> RequestInfo:
        with self._operation("reject_request", actor, request_id=request_id) as kernel:
            return kernel.requests.reject(actor, request_id, notes)

    def get_request(self, request_id: UUID) -> RequestInfo:
        with self._operation("get_request", request_id=request_id) as kernel:
            return kernel.requests.get(request_id)

    def is_request_issued(self, request_id: UUID) -> bool:
        with self._operation("is_request_issued", request_id=request_id) as kernel:
            return kernel.requests.is_issued(request_id)

    def request_display_status(self, request_id: UUID) -> str:
        with self._operation("request_display_status", request_id=request_id) as kernel:
            return kernel.requests.display_status(request_id)

    def list_requests(self, actor: ActorContext, status: str | None = None) -> list[RequestRow]:
        """Every request, newest first.  Admin only."""
        with self._operation("list_requests", actor) as kernel:
            actor.require_admin("list all requests")
            return kernel.request_selector.list_requests(status)

    def my_requests(self, actor: ActorContext) -> list[RequestRow]:
        with self._operation("my_requests", actor) as kernel:
            return kernel.request_selector.for_user(actor.user_id)

    def pending_request_count(self, actor: ActorContext) -> int:
        with self._operation("pending_request_count", actor) as kernel:
            actor.require_admin("view pending requests")
            return kernel.request_selector.pending_count()

    # ------------------------------------------------------------------
    # Issuance, returns and transfers
    # ------------------------------------------------------------------

    def issue_request(
        self,
        actor: ActorContext,
        request_id: UUID,
        return_due_in_days: int | None = None,
        notes: str | None = None,
        issued_to: str | None = None,
    ) -> list[IssuedItemInfo]:
        """
        Issue an approved request.

        ``return_due_in_days`` defaults to the configured
        ``default_return_days`` and may not exceed ``max_return_days``.
        """
        with self._operation("issue_request", actor, request_id=request_id) as kernel:
            days = self._return_days(return_due_in_days)
            return kernel.issuance.issue(actor, request_id, days, notes, issued_to)

    def mark_returned(
        self, actor: ActorContext, issued_item_id: UUID, notes: str | None = None
    ) -> IssuedItemInfo:
        with self._operation("mark_returned", actor) as kernel:
            return kernel.issuance.mark_returned(actor, issued_item_id, notes)

    def transfer_item(
        self,
        actor: ActorContext,
        issued_item_id: UUID,
        to_user_id: UUID,
        notes: str | None = None,
        from_user_id: UUID | None = None,
    ) -> TransferInfo:
        """Hand an issued item to another user; ``from_user_id`` defaults to the actor."""
        source = actor.user_id if from_user_id is None else from_user_id
        with self._operation("transfer_item", actor) as kernel:
            return kernel.transfers.transfer(actor, issued_item_id, source, to_user_id, notes)

    def list_issued(
        self,
        actor: ActorContext,
        status: str | None = None,
        user_id: UUID | None = None,
        item_id: UUID | None = None,
    ) -> list[IssuedRow]:
        with self._operation("list_issued", actor) as kernel:
            actor.require_admin("list issued items")
            return kernel.issuance_selector.list_issued(
                self._clock.now(), status=status, user_id=user_id, item_id=item_id
            )

    def my_items(self, actor: ActorContext) -> list[IssuedRow]:
        """Items the actor currently holds."""
        with self._operation("my_items", actor) as kernel:
            return kernel.issuance_selector.held_by(actor.user_id, self._clock.now())

    def overdue_items(self, actor: ActorContext) -> list[IssuedRow]:
        with self._operation("overdue_items", actor) as kernel:
            actor.require_admin("list overdue items")
            return kernel.issuance_selector.overdue(self._clock.now())

    def transfer_history(
        self, actor: ActorContext, issued_item_id: UUID | None = None
    ) -> list[TransferRow]:
        """Transfers, oldest first.  Non-admins only see transfers they took part in."""
        user_filter = None if actor.is_admin else actor.user_id
        with self._operation("transfer_history", actor) as kernel:
            return kernel.issuance_selector.transfer_history(
                issued_item_id=issued_item_id, user_id=user_filter
            )

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    def register_asset(
        self,
        actor: ActorContext,
        item_number: str,
        item_name: str,
        item_type: str,
        purchase_date: date,
        purchase_price: Decimal | int | str,
        current_location: str,
    ) -> AssetInfo:
        with self._operation("register_asset", actor) as kernel:
            return kernel.assets.register(
                actor,
                item_number,
                item_name,
                item_type,
                purchase_date,
                purchase_price,
                current_location,
            )

    def relocate_asset(self, actor: ActorContext, asset_id: UUID, new_location: str) -> AssetInfo:
        with self._operation("relocate_asset", actor) as kernel:
            return kernel.assets.relocate(actor, asset_id, new_location)

    def discard_asset(self, actor: ActorContext, asset_id: UUID, reason: str) -> AssetInfo:
        with self._operation("discard_asset", actor) as kernel:
            return kernel.assets.discard(actor, asset_id, reason)

    def list_assets(self, actor: ActorContext) -> list[AssetRow]:
        with self._operation("list_assets", actor) as kernel:
            actor.require_admin("list assets")
            return kernel.report_selector.assets()

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def stock_report(self, actor: ActorContext, start: datetime, end: datetime) -> StockReport:
        with self._operation("stock_report", actor) as kernel:
            actor.require_admin("view reports")
            return kernel.report_selector.stock_report(start, end, self._clock.now())

    def item_detail_report(self, actor: ActorContext, item_id: UUID) -> ItemDetailReport:
        with self._operation("item_detail_report", actor, item_id=item_id) as kernel:
            actor.require_admin("view reports")
            return kernel.report_selector.item_detail(item_id, self._clock.now())

    def discard_log(self, actor: ActorContext, start: datetime, end: datetime) -> list[DiscardRow]:
        with self._operation("discard_log", actor) as kernel:
            actor.require_admin("view reports")
            return kernel.report_selector.discards(start, end)
