"""
Service layer for the stock catalogue.

Creates, edits, restocks, deletes and bulk-imports stock items.  Never
writes ``quantity`` itself: new rows start at 0 and any opening balance
is applied through StockLedger.restock so it leaves a purchase record.

Returns StockItemInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select

from stock_kernel.domain.actor import ActorContext
from stock_kernel.domain.stock_import import StockItemDraft, parse_import_lines
from stock_kernel.exceptions import (
    InvalidFieldError,
    InvalidQuantityError,
    MissingMedicalFieldsError,
    StockItemNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.discarded_item import DiscardedItem
from stock_kernel.models.issued_item import IssuedItem, ItemTransfer
from stock_kernel.models.purchase_history import PurchaseHistory
from stock_kernel.models.stock_item import StockCategory, StockItem, UnitType
from stock_kernel.services.base import BaseService
from stock_kernel.services.stock_ledger import StockLedger

logger = get_logger("services.stock_items")

OPENING_STOCK_NOTE = "Opening stock"

_EDITABLE_FIELDS = frozenset(
    {
        "name",
        "item_type",
        "description",
        "stock_category",
        "batch_number",
        "expiry_date",
        "unit_type",
        "purchase_vendor",
    }
)


@dataclass(frozen=True)
class StockItemInfo:
    """Immutable DTO for a stock item."""

    id: UUID
    name: str
    item_type: str
    quantity: int
    description: str | None
    stock_category: StockCategory
    batch_number: str | None
    expiry_date: date | None
    unit_type: UnitType
    purchase_vendor: str | None

    @property
    def is_medical(self) -> bool:
        return self.stock_category == StockCategory.MEDICAL


@dataclass(frozen=True)
class BulkImportResult:
    created: tuple[StockItemInfo, ...]
    skipped_lines: tuple[int, ...]


def to_stock_item_info(item: StockItem) -> StockItemInfo:
    """Convert ORM StockItem to StockItemInfo DTO."""
    return StockItemInfo(
        id=item.id,
        name=item.name,
        item_type=item.item_type,
        quantity=item.quantity,
        description=item.description,
        stock_category=StockCategory(item.stock_category),
        batch_number=item.batch_number,
        expiry_date=item.expiry_date,
        unit_type=UnitType(item.unit_type),
        purchase_vendor=item.purchase_vendor,
    )


def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidFieldError(field, "must be a non-empty string")
    return value.strip()


def _check_medical(
    category: StockCategory, batch_number: str | None, expiry_date: date | None
) -> None:
    if category != StockCategory.MEDICAL:
        return
    missing = []
    if not batch_number:
        missing.append("batch_number")
    if expiry_date is None:
        missing.append("expiry_date")
    if missing:
        raise MissingMedicalFieldsError(tuple(missing))


def _parse_enum(enum_cls, field: str, value: Any):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidFieldError(field, f"must be one of {allowed}") from None


class StockItemService(BaseService[StockItem]):
    """Catalogue maintenance for stock items.  Every write requires an admin."""

    def __init__(self, session, clock=None, ledger: StockLedger | None = None):
        super().__init__(session, clock)
        self._ledger = ledger or StockLedger(session, self.clock)

    def _get_by_id(self, item_id: UUID) -> StockItem:
        item = self.session.get(StockItem, item_id)
        if item is None:
            raise StockItemNotFoundError(str(item_id))
        return item

    def get(self, item_id: UUID) -> StockItemInfo:
        """
        Raises:
            StockItemNotFoundError: If the item doesn't exist.
        """
        return to_stock_item_info(self._get_by_id(item_id))

    def create(self, actor: ActorContext, draft: StockItemDraft) -> StockItemInfo:
        """
        Create a stock item.

        Preconditions:
            - actor is an admin.
            - name and item_type are non-empty.
            - draft.quantity is a whole number >= 0.
            - medical items carry batch_number and expiry_date.

        Postconditions:
            - The row exists with quantity == draft.quantity; a positive
              opening quantity is recorded as one restock.

        Raises:
            PermissionDeniedError, InvalidFieldError, InvalidQuantityError,
            MissingMedicalFieldsError.
        """
        actor.require_admin("create stock items")

        name = _require_text("name", draft.name)
        item_type = _require_text("type", draft.item_type)
        category = _parse_enum(StockCategory, "stock_category", draft.stock_category)
        unit_type = _parse_enum(UnitType, "unit_type", draft.unit_type)
        opening = draft.quantity
        if isinstance(opening, bool) or not isinstance(opening, int) or opening < 0:
            raise InvalidQuantityError(opening)
        _check_medical(category, draft.batch_number, draft.expiry_date)

        item = StockItem(
            name=name,
            item_type=item_type,
            quantity=0,
            description=draft.description,
            stock_category=category.value,
            batch_number=draft.batch_number,
            expiry_date=draft.expiry_date,
            unit_type=unit_type.value,
            purchase_vendor=draft.purchase_vendor,
            created_by_id=actor.user_id,
        )
        self.session.add(item)
        self.session.flush()

        if opening > 0:
            self._ledger.restock(
                item.id, opening, draft.purchase_vendor, OPENING_STOCK_NOTE, actor.user_id
            )
            self.session.refresh(item)

        logger.info(
            "stock_item_created",
            extra={
                "item_id": str(item.id),
                "item_name": name,
                "stock_category": category.value,
                "opening_quantity": opening,
            },
        )
        return to_stock_item_info(item)

    def update(self, actor: ActorContext, item_id: UUID, **changes: Any) -> StockItemInfo:
        """
        Change descriptive fields of a stock item.

        ``quantity`` cannot be set here; use restock, discard or the
        request workflow.

        Raises:
            PermissionDeniedError, StockItemNotFoundError, InvalidFieldError,
            MissingMedicalFieldsError.
        """
        actor.require_admin("edit stock items")

        unknown = set(changes) - _EDITABLE_FIELDS
        if "quantity" in unknown:
            raise InvalidFieldError(
                "quantity", "on-hand quantity changes only through restock or discard"
            )
        if unknown:
            raise InvalidFieldError(", ".join(sorted(unknown)), "not an editable field")

        if "name" in changes:
            changes["name"] = _require_text("name", changes["name"])
        if "item_type" in changes:
            changes["item_type"] = _require_text("type", changes["item_type"])
        if "stock_category" in changes:
            changes["stock_category"] = _parse_enum(
                StockCategory, "stock_category", changes["stock_category"]
            ).value
        if "unit_type" in changes:
            changes["unit_type"] = _parse_enum(UnitType, "unit_type", changes["unit_type"]).value

        item = self._get_by_id(item_id)
        _check_medical(
            StockCategory(changes.get("stock_category", item.stock_category)),
            changes.get("batch_number", item.batch_number),
            changes.get("expiry_date", item.expiry_date),
        )

        for field, value in changes.items():
            setattr(item, field, value)
        item.updated_by_id = actor.user_id
        self.session.flush()

        logger.info(
            "stock_item_updated",
            extra={"item_id": str(item_id), "fields": sorted(changes)},
        )
        return to_stock_item_info(item)

    def restock(
        self,
        actor: ActorContext,
        item_id: UUID,
        quantity_to_add: int,
        vendor: str | None = None,
        notes: str | None = None,
    ) -> int:
        """Admin restock; see StockLedger.restock.  Returns the new quantity."""
        actor.require_admin("restock items")
        return self._ledger.restock(item_id, quantity_to_add, vendor, notes, actor.user_id)

    def delete(self, actor: ActorContext, item_id: UUID) -> None:
        """
        Delete a stock item and every row that depends on it.

        Transfers, issued items, discards and purchase history for the item
        are removed in the same transaction.  Requests keep their line
        snapshots.

        Raises:
            PermissionDeniedError, StockItemNotFoundError.
        """
        actor.require_admin("delete stock items")
        item = self._get_by_id(item_id)

        issued_ids = select(IssuedItem.id).where(IssuedItem.item_id == item_id)
        self.session.execute(
            delete(ItemTransfer)
            .where(ItemTransfer.issued_item_id.in_(issued_ids))
            .execution_options(synchronize_session=False)
        )
        for model in (IssuedItem, DiscardedItem, PurchaseHistory):
            self.session.execute(
                delete(model)
                .where(model.item_id == item_id)
                .execution_options(synchronize_session=False)
            )
        self.session.delete(item)
        self.session.flush()

        logger.info("stock_item_deleted", extra={"item_id": str(item_id)})

    def bulk_import(
        self,
        actor: ActorContext,
        text: str,
        category: StockCategory | str,
    ) -> BulkImportResult:
        """
        Create one stock item per valid line of ``text``.

        Raises:
            PermissionDeniedError.
            InvalidFieldError: No line could be parsed.
        """
        actor.require_admin("import stock items")
        parsed = parse_import_lines(text, category)
        if not parsed.drafts:
            raise InvalidFieldError("import", "no valid items found in the input")

        created = tuple(self.create(actor, draft) for draft in parsed.drafts)
        logger.info(
            "stock_items_imported",
            extra={
                "created_count": len(created),
                "skipped_lines": list(parsed.skipped_lines),
            },
        )
        return BulkImportResult(created=created, skipped_lines=parsed.skipped_lines)
