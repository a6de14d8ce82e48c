"""
End-to-end tests through InventoryOperations.

Every call runs in its own committed transaction against a shared
in-memory SQLite database, so these tests see exactly what a caller sees:
DTOs after commit, rollbacks after failure, and the operation log lines.
"""

from datetime import date, timedelta

import pytest
from sqlalchemy import text

from stock_config.schema import DatabaseConfig, InventoryPolicy, StockConfig
from stock_kernel.db.engine import session_scope
from stock_kernel.domain.actor import UserRole
from stock_kernel.domain.clock import DeterministicClock
from stock_kernel.domain.stock_import import StockItemDraft
from stock_kernel.domain.values import RequestLine
from stock_kernel.exceptions import (
    InsufficientStockError,
    InvalidFieldError,
    InvalidReturnPeriodError,
    PermissionDeniedError,
)
from stock_kernel.models.request import RequestStatus
from stock_kernel.models.stock_item import StockCategory
from stock_services import InventoryOperations


@pytest.fixture
def ops_clock():
    return DeterministicClock()


@pytest.fixture
def ops(ops_clock):
    config = StockConfig(
        database=DatabaseConfig(url="sqlite://"),
        inventory=InventoryPolicy(default_return_days=14, max_return_days=60),
    )
    operations = InventoryOperations(config, ops_clock, setup_logging=False)
    operations.create_schema()
    yield operations
    operations.close()


@pytest.fixture
def admin(ops):
    return ops.create_user("Ada Admin", "ada@example.com", UserRole.ADMIN).as_actor()


@pytest.fixture
def guest(ops):
    return ops.create_user("Gus Guest", "gus@example.com").as_actor()


@pytest.fixture
def gloves(ops, admin):
    return ops.create_stock_item(
        admin, StockItemDraft(name="Nitrile Gloves", item_type="PPE", quantity=10)
    )


class TestRoundTrip:

    def test_request_to_return(self, ops, admin, guest, gloves, ops_clock):
        request = ops.submit_request(guest, [RequestLine(gloves.id, 4)])
        ops.approve_request(admin, request.id)
        assert ops.available_quantity(gloves.id) == 6

        [issued] = ops.issue_request(admin, request.id, 7)
        assert ops.request_display_status(request.id) == "issued"
        assert [row.id for row in ops.my_items(guest)] == [issued.id]

        ops_clock.advance_days(10)
        [overdue] = ops.overdue_items(admin)
        assert overdue.id == issued.id
        assert overdue.days_overdue == 3

        returned = ops.mark_returned(admin, issued.id)
        assert returned.returned is True
        assert ops.available_quantity(gloves.id) == 10
        assert ops.my_items(guest) == []
        assert ops.get_request(request.id).status == RequestStatus.APPROVED

    def test_transfer_between_users(self, ops, admin, guest, gloves):
        colleague = ops.create_user("Olive Other", "olive@example.com").as_actor()
        request = ops.submit_request(guest, [RequestLine(gloves.id, 2)])
        ops.approve_request(admin, request.id)
        [issued] = ops.issue_request(admin, request.id)

        ops.transfer_item(guest, issued.id, colleague.user_id, notes="handover")

        assert ops.my_items(guest) == []
        assert [row.id for row in ops.my_items(colleague)] == [issued.id]
        [transfer] = ops.transfer_history(colleague)
        assert transfer.from_user_name == "Gus Guest"
        assert ops.available_quantity(gloves.id) == 8


class TestReturnPolicy:

    def test_default_return_days(self, ops, admin, guest, gloves, ops_clock):
        request = ops.submit_request(guest, [RequestLine(gloves.id, 1)])
        ops.approve_request(admin, request.id)

        [issued] = ops.issue_request(admin, request.id)

        assert issued.return_due == ops_clock.now() + timedelta(days=14)

    def test_configured_maximum(self, ops, admin, guest, gloves):
        request = ops.submit_request(guest, [RequestLine(gloves.id, 1)])
        ops.approve_request(admin, request.id)

        with pytest.raises(InvalidReturnPeriodError) as exc_info:
            ops.issue_request(admin, request.id, 90)

        assert exc_info.value.maximum == 60
        assert ops.is_request_issued(request.id) is False


class TestTransactions:

    def test_failed_approval_leaves_everything_unchanged(self, ops, admin, guest, gloves):
        request = ops.submit_request(guest, [RequestLine(gloves.id, 11)])

        with pytest.raises(InsufficientStockError):
            ops.approve_request(admin, request.id)

        assert ops.available_quantity(gloves.id) == 10
        assert ops.get_request(request.id).status == RequestStatus.PENDING

    def test_operation_rolls_back_on_error(self, ops, admin, gloves):
        with pytest.raises(InvalidFieldError):
            with ops._operation("restock_then_fail", admin) as kernel:
                kernel.stock_items.restock(admin, gloves.id, 5)
                raise InvalidFieldError("notes", "rejected after write")

        assert ops.available_quantity(gloves.id) == 10

    def test_restock_survives_missing_purchase_history(self, ops, admin, gloves):
        with session_scope() as session:
            session.execute(text("DROP TABLE purchase_history"))

        assert ops.restock(admin, gloves.id, 5, vendor="MedSupply") == 15
        assert ops.available_quantity(gloves.id) == 15


class TestAdminOnlyListings:

    @pytest.mark.parametrize(
        "call",
        [
            lambda ops, actor: ops.list_requests(actor),
            lambda ops, actor: ops.pending_request_count(actor),
            lambda ops, actor: ops.list_issued(actor),
            lambda ops, actor: ops.overdue_items(actor),
            lambda ops, actor: ops.list_assets(actor),
        ],
    )
    def test_guest_denied(self, ops, guest, call):
        with pytest.raises(PermissionDeniedError):
            call(ops, guest)

    def test_guest_report_denied(self, ops, guest, ops_clock):
        with pytest.raises(PermissionDeniedError):
            ops.stock_report(guest, ops_clock.now() - timedelta(days=1), ops_clock.now())

    def test_my_requests(self, ops, admin, guest, gloves):
        mine = ops.submit_request(guest, [RequestLine(gloves.id, 1)])
        ops.submit_request(admin, [RequestLine(gloves.id, 1)])

        assert [row.id for row in ops.my_requests(guest)] == [mine.id]
        assert ops.pending_request_count(admin) == 2


class TestCatalogue:

    def test_low_stock_uses_configured_threshold(self, ops, admin, gloves):
        ops.create_stock_item(admin, StockItemDraft(name="Masks", item_type="PPE", quantity=50))
        ops.create_stock_item(admin, StockItemDraft(name="Gowns", item_type="PPE", quantity=3))

        low = ops.list_stock(low_stock_only=True)

        assert [row.name for row in low] == ["Gowns", "Nitrile Gloves"]
        assert len(ops.list_stock()) == 3

    def test_expiry_views_use_the_clock(self, ops, admin):
        for name, expiry in [("Old", date(2023, 12, 1)), ("Soon", date(2024, 1, 10))]:
            ops.create_stock_item(
                admin,
                StockItemDraft(
                    name=name,
                    item_type="Vaccine",
                    quantity=5,
                    stock_category=StockCategory.MEDICAL,
                    batch_number="B-1",
                    expiry_date=expiry,
                ),
            )

        assert [row.name for row in ops.near_expiry_items()] == ["Soon"]
        assert [row.name for row in ops.expired_items()] == ["Old"]

    def test_bulk_import(self, ops, admin):
        result = ops.bulk_import(admin, "Gauze,Dressing,5\n,Dressing,1\nTape,Dressing,x", "general")

        assert result.skipped_lines == (2,)
        assert ops.item_types() == ["Dressing"]

    def test_discard_appears_in_log(self, ops, admin, gloves, ops_clock):
        ops.discard_stock(admin, gloves.id, 2, "expired")

        [row] = ops.discard_log(
            admin, ops_clock.now() - timedelta(days=1), ops_clock.now() + timedelta(days=1)
        )
        assert row.quantity_discarded == 2
        assert ops.available_quantity(gloves.id) == 8


class TestOperationLogging:

    def test_completed_operation(self, ops, admin, gloves, captured_logs):
        ops.restock(admin, gloves.id, 5, vendor="MedSupply")

        records = captured_logs()
        started = [r for r in records if r["message"] == "operation_started"]
        completed = [r for r in records if r["message"] == "operation_completed"]
        restocked = [r for r in records if r["message"] == "stock_restocked"]

        assert started[-1]["operation"] == "restock"
        assert started[-1]["actor_id"] == str(admin.user_id)
        assert completed[-1]["duration_ms"] >= 0
        assert restocked[-1]["correlation_id"] == completed[-1]["correlation_id"]
        assert restocked[-1]["item_id"] == str(gloves.id)

    def test_failed_operation(self, ops, guest, gloves, captured_logs):
        with pytest.raises(PermissionDeniedError):
            ops.restock(guest, gloves.id, 5)

        [failed] = [r for r in captured_logs() if r["message"] == "operation_failed"]
        assert failed["level"] == "WARNING"
        assert failed["error_type"] == "PermissionDeniedError"
        assert failed["operation"] == "restock"

    def test_each_operation_gets_its_own_correlation_id(self, ops, gloves, captured_logs):
        ops.available_quantity(gloves.id)
        ops.available_quantity(gloves.id)

        ids = [
            r["correlation_id"]
            for r in captured_logs()
            if r["message"] == "operation_completed" and r["operation"] == "available_quantity"
        ]
        assert len(ids) == 2
        assert ids[0] != ids[1]
