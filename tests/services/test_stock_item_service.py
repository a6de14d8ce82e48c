"""
Tests for StockItemService.

Covers:
- Creation with opening stock routed through a restock
- Medical field requirements
- Descriptive updates (never quantity)
- Cascade delete of dependent rows
- Bulk import
"""

from datetime import date

import pytest
from sqlalchemy import func, select

from stock_kernel.domain.stock_import import StockItemDraft
from stock_kernel.domain.values import RequestLine
from stock_kernel.exceptions import (
    InvalidFieldError,
    InvalidQuantityError,
    MissingMedicalFieldsError,
    PermissionDeniedError,
    StockItemNotFoundError,
)
from stock_kernel.models.discarded_item import DiscardedItem
from stock_kernel.models.issued_item import IssuedItem, ItemTransfer
from stock_kernel.models.purchase_history import PurchaseHistory
from stock_kernel.models.stock_item import StockCategory, UnitType
from stock_kernel.services.stock_item_service import OPENING_STOCK_NOTE


def _count(session, model, **filters):
    stmt = select(func.count()).select_from(model)
    for column, value in filters.items():
        stmt = stmt.where(getattr(model, column) == value)
    return session.execute(stmt).scalar_one()


class TestCreate:

    def test_opening_quantity_is_a_restock(self, stock_items, admin, session):
        item = stock_items.create(
            admin,
            StockItemDraft(
                name="Gloves",
                item_type="PPE",
                quantity=40,
                purchase_vendor="Acme",
                unit_type=UnitType.BOX,
            ),
        )

        assert item.quantity == 40
        assert item.unit_type == UnitType.BOX
        purchase = session.execute(
            select(PurchaseHistory).where(PurchaseHistory.item_id == item.id)
        ).scalar_one()
        assert purchase.quantity_added == 40
        assert purchase.purchase_vendor == "Acme"
        assert purchase.notes == OPENING_STOCK_NOTE

    def test_zero_opening_quantity_records_no_purchase(self, stock_items, admin, session):
        item = stock_items.create(admin, StockItemDraft(name="Tape", item_type="Consumable"))

        assert item.quantity == 0
        assert _count(session, PurchaseHistory, item_id=item.id) == 0

    def test_strips_name_and_type(self, stock_items, admin):
        item = stock_items.create(admin, StockItemDraft(name="  Tape ", item_type=" Consumable"))

        assert item.name == "Tape"
        assert item.item_type == "Consumable"

    @pytest.mark.parametrize("name,item_type,field", [("", "PPE", "name"), ("Gloves", "  ", "type")])
    def test_requires_name_and_type(self, stock_items, admin, name, item_type, field):
        with pytest.raises(InvalidFieldError) as exc_info:
            stock_items.create(admin, StockItemDraft(name=name, item_type=item_type))

        assert exc_info.value.field == field

    def test_negative_opening_quantity(self, stock_items, admin):
        with pytest.raises(InvalidQuantityError):
            stock_items.create(admin, StockItemDraft(name="Tape", item_type="C", quantity=-1))

    def test_medical_requires_batch_and_expiry(self, stock_items, admin):
        with pytest.raises(MissingMedicalFieldsError) as exc_info:
            stock_items.create(
                admin,
                StockItemDraft(
                    name="Paracetamol",
                    item_type="Tablet",
                    stock_category=StockCategory.MEDICAL,
                ),
            )

        assert exc_info.value.missing == ("batch_number", "expiry_date")

    def test_medical_with_fields(self, stock_items, admin):
        item = stock_items.create(
            admin,
            StockItemDraft(
                name="Paracetamol",
                item_type="Tablet",
                quantity=100,
                stock_category="medical",
                batch_number="B-9",
                expiry_date=date(2025, 1, 31),
            ),
        )

        assert item.is_medical
        assert item.expiry_date == date(2025, 1, 31)

    def test_unknown_category(self, stock_items, admin):
        with pytest.raises(InvalidFieldError) as exc_info:
            stock_items.create(
                admin, StockItemDraft(name="X", item_type="Y", stock_category="food")
            )

        assert exc_info.value.field == "stock_category"

    def test_guest_cannot_create(self, stock_items, guest):
        with pytest.raises(PermissionDeniedError):
            stock_items.create(guest, StockItemDraft(name="Tape", item_type="C"))


class TestUpdate:

    def test_updates_descriptive_fields(self, stock_items, admin, make_item):
        item = make_item(quantity=5)

        updated = stock_items.update(
            admin, item.id, description="Powder free", purchase_vendor="Acme"
        )

        assert updated.description == "Powder free"
        assert updated.purchase_vendor == "Acme"
        assert updated.quantity == 5

    def test_quantity_is_not_editable(self, stock_items, admin, make_item):
        item = make_item(quantity=5)

        with pytest.raises(InvalidFieldError) as exc_info:
            stock_items.update(admin, item.id, quantity=50)

        assert exc_info.value.field == "quantity"
        assert stock_items.get(item.id).quantity == 5

    def test_unknown_field(self, stock_items, admin, make_item):
        item = make_item()

        with pytest.raises(InvalidFieldError):
            stock_items.update(admin, item.id, colour="blue")

    def test_switching_to_medical_requires_fields(self, stock_items, admin, make_item):
        item = make_item()

        with pytest.raises(MissingMedicalFieldsError):
            stock_items.update(admin, item.id, stock_category="medical", batch_number="B-1")

    def test_unknown_item(self, stock_items, admin):
        from uuid import uuid4

        with pytest.raises(StockItemNotFoundError):
            stock_items.update(admin, uuid4(), description="x")


class TestRestock:

    def test_admin_restock(self, stock_items, admin, make_item):
        item = make_item(quantity=5)

        assert stock_items.restock(admin, item.id, 10, vendor="Acme") == 15
        assert stock_items.get(item.id).quantity == 15

    def test_guest_cannot_restock(self, stock_items, guest, make_item):
        item = make_item(quantity=5)

        with pytest.raises(PermissionDeniedError):
            stock_items.restock(guest, item.id, 10)


class TestDelete:

    def test_removes_dependent_rows(
        self,
        stock_items,
        workflow,
        issuance,
        transfers,
        admin,
        guest,
        other_guest_user,
        make_item,
        session,
    ):
        item = make_item(quantity=10)
        request = workflow.submit(guest, [RequestLine(item.id, 2)])
        workflow.approve(admin, request.id)
        issued = issuance.issue(admin, request.id, 7)
        transfers.transfer(guest, issued[0].id, guest.user_id, other_guest_user.id)
        transfers.discard_stock(admin, item.id, 1, "damaged")

        stock_items.delete(admin, item.id)

        with pytest.raises(StockItemNotFoundError):
            stock_items.get(item.id)
        assert _count(session, PurchaseHistory, item_id=item.id) == 0
        assert _count(session, DiscardedItem, item_id=item.id) == 0
        assert _count(session, IssuedItem, item_id=item.id) == 0
        assert _count(session, ItemTransfer) == 0
        # The request keeps its line snapshot
        assert workflow.get(request.id).lines[0].item_name == "Nitrile Gloves"

    def test_guest_cannot_delete(self, stock_items, guest, make_item):
        item = make_item()

        with pytest.raises(PermissionDeniedError):
            stock_items.delete(guest, item.id)


class TestBulkImport:

    def test_creates_valid_lines_and_reports_skipped(self, stock_items, admin, session):
        text = "Gloves, PPE, 50, Nitrile, Acme\nMasks\nGowns, PPE, 0"

        result = stock_items.bulk_import(admin, text, "general")

        assert [item.name for item in result.created] == ["Gloves", "Gowns"]
        assert result.skipped_lines == (2,)
        assert result.created[0].quantity == 50
        assert _count(session, PurchaseHistory, item_id=result.created[0].id) == 1

    def test_import_is_logged(self, stock_items, admin, captured_logs):
        stock_items.bulk_import(admin, "Gloves, PPE, 5\nMasks\nGowns, PPE, 3", "general")

        [record] = [r for r in captured_logs() if r["message"] == "stock_items_imported"]
        assert record["created_count"] == 2
        assert record["skipped_lines"] == [2]

    def test_nothing_valid(self, stock_items, admin):
        with pytest.raises(InvalidFieldError) as exc_info:
            stock_items.bulk_import(admin, "Masks\n\n", "general")

        assert exc_info.value.field == "import"

    def test_guest_cannot_import(self, stock_items, guest):
        with pytest.raises(PermissionDeniedError):
            stock_items.bulk_import(guest, "Gloves, PPE, 5", "general")
