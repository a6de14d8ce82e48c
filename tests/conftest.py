"""
Pytest fixtures for the stock kernel test suite.

Provides:
- A fresh in-memory SQLite database per test (engine + session)
- A deterministic clock
- Admin and guest users with their ActorContexts
- Kernel services wired to the test session
- Captured JSON logs

Environment Variables:
- STOCK_TEST_POSTGRES_URL: PostgreSQL URL for tests marked ``postgres``.
  Those tests are skipped when it is not set.
"""

import json
import logging
import os
from datetime import date, timedelta
from io import StringIO
from typing import Generator

import pytest
from sqlalchemy.orm import Session

from stock_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from stock_kernel.domain.actor import UserRole
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.stock_import import StockItemDraft
from stock_kernel.domain.values import RequestLine
from stock_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from stock_kernel.models.stock_item import StockCategory
from stock_kernel.services.asset_service import AssetService
from stock_kernel.services.issuance_service import IssuanceService
from stock_kernel.services.request_workflow import RequestWorkflow
from stock_kernel.services.stock_item_service import StockItemService
from stock_kernel.services.stock_ledger import StockLedger
from stock_kernel.services.transfer_service import TransferService
from stock_kernel.services.user_service import UserService

POSTGRES_URL_ENV = "STOCK_TEST_POSTGRES_URL"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture stock_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.restock(...)
            logs = captured_logs()
            assert any(r["message"] == "stock_restocked" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("stock_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database with every table created."""
    reset_engine()
    init_engine_from_url("sqlite://")
    create_tables()
    yield get_engine()
    reset_engine()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    """Session for flush-only service tests; never committed."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def postgres_url() -> str:
    url = os.environ.get(POSTGRES_URL_ENV)
    if not url:
        pytest.skip(f"{POSTGRES_URL_ENV} not set")
    return url


# =============================================================================
# Time and actors
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def users(session, clock) -> UserService:
    return UserService(session, clock)


@pytest.fixture
def admin_user(users):
    return users.create("Ada Admin", "ada@example.com", UserRole.ADMIN, "Stores")


@pytest.fixture
def admin(admin_user):
    return admin_user.as_actor()


@pytest.fixture
def guest_user(users):
    return users.create("Gus Guest", "gus@example.com", UserRole.GUEST, "Ward 3")


@pytest.fixture
def guest(guest_user):
    return guest_user.as_actor()


@pytest.fixture
def other_guest_user(users):
    return users.create("Olive Other", "olive@example.com", UserRole.GUEST, "Ward 5")


@pytest.fixture
def other_guest(other_guest_user):
    return other_guest_user.as_actor()


# =============================================================================
# Services
# =============================================================================


@pytest.fixture
def ledger(session, clock) -> StockLedger:
    return StockLedger(session, clock)


@pytest.fixture
def stock_items(session, clock, ledger) -> StockItemService:
    return StockItemService(session, clock, ledger=ledger)


@pytest.fixture
def workflow(session, clock, ledger) -> RequestWorkflow:
    return RequestWorkflow(session, clock, ledger=ledger)


@pytest.fixture
def issuance(session, clock, ledger) -> IssuanceService:
    return IssuanceService(session, clock, ledger=ledger)


@pytest.fixture
def transfers(session, clock, ledger) -> TransferService:
    return TransferService(session, clock, ledger=ledger)


@pytest.fixture
def assets(session, clock) -> AssetService:
    return AssetService(session, clock)


# =============================================================================
# Data builders
# =============================================================================


@pytest.fixture
def make_item(stock_items, admin):
    """Create a stock item; medical items get a batch and an expiry a year out."""

    def _make(
        name: str = "Nitrile Gloves",
        quantity: int = 10,
        item_type: str = "PPE",
        category: StockCategory = StockCategory.GENERAL,
        **fields,
    ):
        if category == StockCategory.MEDICAL:
            fields.setdefault("batch_number", "B-001")
            fields.setdefault("expiry_date", date(2024, 1, 1) + timedelta(days=365))
        return stock_items.create(
            admin,
            StockItemDraft(
                name=name,
                item_type=item_type,
                quantity=quantity,
                stock_category=category,
                **fields,
            ),
        )

    return _make


@pytest.fixture
def approved_request(workflow, admin, guest):
    """Submit a request for ``guest`` over (item, quantity) pairs and approve it."""

    def _make(*pairs):
        request = workflow.submit(
            guest, [RequestLine(item_id=item.id, quantity=qty) for item, qty in pairs]
        )
        return workflow.approve(admin, request.id)

    return _make
