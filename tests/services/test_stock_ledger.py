"""
Tests for StockLedger.

Covers:
- Restock with purchase history and the best-effort audit append
- Conditional deduction and InsufficientStockError details
- All-or-nothing multi-line deduction
- Credit and discard
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from stock_kernel.domain.values import RequestLine
from stock_kernel.exceptions import (
    InsufficientStockError,
    InvalidDiscardReasonError,
    InvalidQuantityError,
    StockItemNotFoundError,
)
from stock_kernel.models.discarded_item import DiscardedItem, DiscardReason
from stock_kernel.models.purchase_history import PurchaseHistory
from stock_kernel.models.stock_item import StockItem


class TestRestock:

    def test_increments_and_records_purchase(self, ledger, make_item, admin, session, clock):
        item = make_item(quantity=5)

        new_quantity = ledger.restock(item.id, 7, "MedSupply Co", "Invoice 42", admin.user_id)

        assert new_quantity == 12
        purchases = session.execute(
            select(PurchaseHistory)
            .where(PurchaseHistory.item_id == item.id)
            .order_by(PurchaseHistory.quantity_added)
        ).scalars().all()
        assert [p.quantity_added for p in purchases] == [5, 7]
        assert purchases[1].purchase_vendor == "MedSupply Co"
        assert purchases[1].notes == "Invoice 42"

    def test_rejects_non_positive(self, ledger, make_item, admin):
        item = make_item(quantity=5)

        with pytest.raises(InvalidQuantityError):
            ledger.restock(item.id, 0, None, None, admin.user_id)
        assert ledger.current_quantity(item.id) == 5

    def test_unknown_item(self, ledger, admin):
        with pytest.raises(StockItemNotFoundError):
            ledger.restock(uuid4(), 3, None, None, admin.user_id)

    def test_purchase_history_failure_is_logged_and_swallowed(
        self, ledger, make_item, admin, session, captured_logs
    ):
        item = make_item(quantity=5)
        PurchaseHistory.__table__.drop(session.connection())

        new_quantity = ledger.restock(item.id, 4, "Acme", None, admin.user_id)

        assert new_quantity == 9
        assert ledger.current_quantity(item.id) == 9
        failures = [r for r in captured_logs() if r["message"] == "purchase_history_append_failed"]
        assert len(failures) == 1
        assert failures[0]["level"] == "WARNING"
        assert failures[0]["item_id"] == str(item.id)

    def test_logs_restock(self, ledger, make_item, admin, captured_logs):
        item = make_item(quantity=1)

        ledger.restock(item.id, 2, None, None, admin.user_id)

        events = [r for r in captured_logs() if r["message"] == "stock_restocked"]
        assert events[-1]["new_quantity"] == 3


class TestDeduct:

    def test_deducts(self, ledger, make_item):
        item = make_item(quantity=10)

        assert ledger.deduct(item.id, 4) == 6
        assert ledger.current_quantity(item.id) == 6

    def test_can_reach_zero(self, ledger, make_item):
        item = make_item(quantity=3)

        assert ledger.deduct(item.id, 3) == 0

    def test_insufficient_names_item_and_numbers(self, ledger, make_item):
        item = make_item(name="Sterile Gauze", quantity=3)

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.deduct(item.id, 5)

        error = exc_info.value
        assert error.item_id == str(item.id)
        assert error.item_name == "Sterile Gauze"
        assert error.requested == 5
        assert error.available == 3
        assert str(error) == "Insufficient stock for Sterile Gauze. Available: 3, Requested: 5"
        assert ledger.current_quantity(item.id) == 3

    def test_unknown_item(self, ledger):
        with pytest.raises(StockItemNotFoundError):
            ledger.deduct(uuid4(), 1)

    def test_loaded_entity_sees_new_quantity(self, ledger, make_item, session):
        item = make_item(quantity=10)
        entity = session.get(StockItem, item.id)
        assert entity.quantity == 10

        ledger.deduct(item.id, 4)

        assert entity.quantity == 6


class TestDeductLines:

    def test_all_lines_deducted(self, ledger, make_item):
        gloves = make_item(name="Gloves", quantity=10)
        masks = make_item(name="Masks", quantity=5)

        remaining = ledger.deduct_lines(
            [RequestLine(gloves.id, 4), RequestLine(masks.id, 5)]
        )

        assert remaining == {gloves.id: 6, masks.id: 0}

    def test_failure_leaves_every_line_untouched(self, ledger, make_item):
        gloves = make_item(name="Gloves", quantity=10)
        masks = make_item(name="Masks", quantity=2)
        gowns = make_item(name="Gowns", quantity=8)

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.deduct_lines(
                [RequestLine(gloves.id, 4), RequestLine(masks.id, 3), RequestLine(gowns.id, 1)]
            )

        assert exc_info.value.item_name == "Masks"
        assert ledger.current_quantity(gloves.id) == 10
        assert ledger.current_quantity(masks.id) == 2
        assert ledger.current_quantity(gowns.id) == 8

    def test_repeated_item_checked_cumulatively(self, ledger, make_item):
        gloves = make_item(name="Gloves", quantity=5)

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.deduct_lines([RequestLine(gloves.id, 3), RequestLine(gloves.id, 3)])

        assert exc_info.value.requested == 3
        assert exc_info.value.available == 2
        assert ledger.current_quantity(gloves.id) == 5

    def test_unknown_item_deducts_nothing(self, ledger, make_item):
        gloves = make_item(quantity=5)

        with pytest.raises(StockItemNotFoundError):
            ledger.deduct_lines([RequestLine(gloves.id, 1), RequestLine(uuid4(), 1)])

        assert ledger.current_quantity(gloves.id) == 5

    def test_logs_refusal(self, ledger, make_item, captured_logs):
        gloves = make_item(quantity=1)

        with pytest.raises(InsufficientStockError):
            ledger.deduct_lines([RequestLine(gloves.id, 2)])

        refused = [
            r for r in captured_logs() if r["message"] == "approval_rejected_insufficient_stock"
        ]
        assert refused[0]["requested"] == 2
        assert refused[0]["available"] == 1


class TestCredit:

    def test_adds_without_upper_bound(self, ledger, make_item):
        item = make_item(quantity=0)

        assert ledger.credit(item.id, 25) == 25

    def test_rejects_non_positive(self, ledger, make_item):
        item = make_item(quantity=0)

        with pytest.raises(InvalidQuantityError):
            ledger.credit(item.id, -1)


class TestDiscard:

    def test_discard_expired(self, ledger, make_item, admin, session, clock):
        item = make_item(quantity=10)

        record = ledger.discard(item.id, 2, "expired", admin.user_id, "Past date")

        assert record.remaining_quantity == 8
        assert record.reason == DiscardReason.EXPIRED
        assert record.discarded_date == clock.now()
        rows = session.execute(
            select(DiscardedItem).where(DiscardedItem.item_id == item.id)
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].reason == "expired"
        assert rows[0].quantity_discarded == 2
        assert rows[0].discarded_by == admin.user_id

    def test_unknown_reason(self, ledger, make_item, admin):
        item = make_item(quantity=10)

        with pytest.raises(InvalidDiscardReasonError) as exc_info:
            ledger.discard(item.id, 1, "lost", admin.user_id)

        assert exc_info.value.allowed == ("damaged", "broken", "expired")
        assert ledger.current_quantity(item.id) == 10

    def test_more_than_on_hand_writes_nothing(self, ledger, make_item, admin, session):
        item = make_item(quantity=1)

        with pytest.raises(InsufficientStockError):
            ledger.discard(item.id, 2, DiscardReason.BROKEN, admin.user_id)

        assert ledger.current_quantity(item.id) == 1
        assert session.execute(select(DiscardedItem)).scalars().all() == []
