"""
stock_services.kernel_services -- DI container for kernel services.

Responsibility:
    Creates every kernel service and selector for one session exactly once
    and wires them together.  All write services share one StockLedger so
    every quantity change in a transaction goes through the same instance.

Architecture position:
    Services -- the only place kernel services are constructed and composed.

Usage:
    with session_scope() as session:
        kernel = KernelServices(session, clock)
        kernel.requests.approve(actor, request_id)
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.selectors.issuance_selector import IssuanceSelector
from stock_kernel.selectors.report_selector import ReportSelector
from stock_kernel.selectors.request_selector import RequestSelector
from stock_kernel.selectors.stock_selector import StockSelector
from stock_kernel.services.asset_service import AssetService
from stock_kernel.services.issuance_service import IssuanceService
from stock_kernel.services.request_workflow import RequestWorkflow
from stock_kernel.services.stock_item_service import StockItemService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transfer_service import TransferService
from stock_kernel.services.user_service import UserService


class KernelServices:
    """Central factory for kernel services.

    Contract:
        Receives a SQLAlchemy Session and optional Clock.  Constructs every
        service and selector once, in dependency order, and exposes them
        as public attributes.

    Non-goals:
        - Does NOT manage transaction boundaries (caller's responsibility).
        - Does NOT own the Session lifecycle (no commit/rollback).
    """

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()

        # Foundational
        self.ledger = StockLedger(session, self._clock)
        self.users = UserService(session, self._clock)

        # Write services sharing the ledger
        self.stock_items = StockItemService(session, self._clock, ledger=self.ledger)
        self.requests = RequestWorkflow(session, self._clock, ledger=self.ledger)
        self.issuance = IssuanceService(session, self._clock, ledger=self.ledger)
        self.transfers = TransferService(session, self._clock, ledger=self.ledger)
        self.assets = AssetService(session, self._clock)

        # Read side
        self.stock_selector = StockSelector(session)
        self.request_selector = RequestSelector(session)
        self.issuance_selector = IssuanceSelector(session)
        self.report_selector = ReportSelector(session)

    @property
    def session(self) -> Session:
        return self._session

    @property
    def clock(self) -> Clock:
        return self._clock
