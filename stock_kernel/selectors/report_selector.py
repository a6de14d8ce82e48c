"""
Module: stock_kernel.selectors.report_selector
Responsibility: Date-ranged stock report bundle and the single-item detail
    report.  Produces plain dataclasses; rendering (spreadsheets, print
    views) belongs to callers.
Architecture position: Kernel > Selectors.

Report sections:
    issued_items            issued between start and end, newest first
    returned_items          the returned subset of issued_items
    stock_balance           every stock item, by name
    assets                  the whole asset register, newest first
    purchase_history        restocks between start and end, newest first
    discards                write-offs between start and end, newest first
    vendor_analysis         purchase_history grouped by vendor
    item_purchase_history   purchase_history per item, oldest first, with a
                            vendor-change marker on every row
    summary                 headline counts and totals

Purchases without a vendor are grouped under ``NO_VENDOR_LABEL``.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import aliased

from stock_kernel.db.types import ensure_utc
from stock_kernel.exceptions import InvalidFieldError
from stock_kernel.models.asset import Asset, AssetStatus
from stock_kernel.models.discarded_item import DiscardedItem, DiscardReason
from stock_kernel.models.issued_item import IssuedItem
from stock_kernel.models.purchase_history import PurchaseHistory
from stock_kernel.models.stock_item import StockItem
from stock_kernel.models.user import User
from stock_kernel.selectors.base import BaseSelector
from stock_kernel.selectors.issuance_selector import (
    IssuedRow,
    issued_rows_statement,
    to_issued_row,
)
from stock_kernel.selectors.stock_selector import StockRow, StockSelector

NO_VENDOR_LABEL = "Not Specified"

# Vendor-change markers for item purchase history
INITIAL_PURCHASE = "initial"
SAME_VENDOR = "same"
VENDOR_CHANGED = "changed"


@dataclass(frozen=True)
class AssetRow:
    id: UUID
    item_number: str
    item_name: str
    item_type: str
    purchase_date: date
    purchase_price: Decimal
    current_location: str
    status: AssetStatus
    discard_reason: str | None
    discard_date: datetime | None


@dataclass(frozen=True)
class PurchaseRow:
    id: UUID
    item_id: UUID
    item_name: str
    item_type: str
    purchase_vendor: str | None
    quantity_added: int
    purchase_date: datetime
    notes: str | None


@dataclass(frozen=True)
class DiscardRow:
    id: UUID
    item_id: UUID
    item_name: str
    quantity_discarded: int
    reason: DiscardReason
    discarded_by_name: str | None
    notes: str | None
    discarded_date: datetime


@dataclass(frozen=True)
class VendorSummary:
    vendor: str
    total_purchases: int
    total_quantity: int
    unique_items: int
    last_purchase_date: datetime

    @property
    def average_quantity(self) -> Decimal:
        """Mean quantity per purchase, to two places."""
        return (Decimal(self.total_quantity) / self.total_purchases).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class ItemPurchaseRow:
    item_label: str
    purchase: PurchaseRow
    vendor_change: str
    cumulative_quantity: int


@dataclass(frozen=True)
class ReportSummary:
    total_quantity_issued: int
    issue_transactions: int
    returned_count: int
    active_count: int
    overdue_count: int
    total_assets: int
    active_assets: int
    discarded_assets: int
    active_asset_value: Decimal
    purchase_transactions: int
    total_quantity_purchased: int
    unique_vendors: int
    purchases_with_vendor: int
    purchases_without_vendor: int
    vendor_change_count: int
    total_quantity_discarded: int

    @property
    def vendor_coverage_percent(self) -> int:
        if self.purchase_transactions == 0:
            return 0
        return round(self.purchases_with_vendor * 100 / self.purchase_transactions)


@dataclass(frozen=True)
class StockReport:
    start: datetime
    end: datetime
    generated_at: datetime
    issued_items: list[IssuedRow]
    returned_items: list[IssuedRow]
    stock_balance: list[StockRow]
    assets: list[AssetRow]
    purchase_history: list[PurchaseRow]
    discards: list[DiscardRow]
    vendor_analysis: list[VendorSummary]
    item_purchase_history: list[ItemPurchaseRow]
    summary: ReportSummary


@dataclass(frozen=True)
class ItemDetailReport:
    item: StockRow
    purchase_history: list[PurchaseRow]
    issued_items: list[IssuedRow]
    total_purchased: int
    total_issued: int
    unique_vendors: int
    unique_holders: int
    active_issues: int
    returned_issues: int
    vendors: list[str] = field(default_factory=list)


def vendor_analysis(purchases: list[PurchaseRow]) -> list[VendorSummary]:
    """Group purchases by vendor; most purchased quantity first."""
    groups: dict[str, list[PurchaseRow]] = {}
    for purchase in purchases:
        groups.setdefault(purchase.purchase_vendor or NO_VENDOR_LABEL, []).append(purchase)

    summaries = [
        VendorSummary(
            vendor=vendor,
            total_purchases=len(rows),
            total_quantity=sum(row.quantity_added for row in rows),
            unique_items=len({row.item_id for row in rows}),
            last_purchase_date=max(row.purchase_date for row in rows),
        )
        for vendor, rows in groups.items()
    ]
    summaries.sort(key=lambda s: (-s.total_quantity, s.vendor))
    return summaries


def item_purchase_history(purchases: list[PurchaseRow]) -> list[ItemPurchaseRow]:
    """
    Per-item purchase sequences, oldest first, each row marked
    ``initial``, ``same`` or ``changed`` against the previous purchase
    of the same item.
    """
    by_item: OrderedDict[str, list[PurchaseRow]] = OrderedDict()
    for purchase in sorted(purchases, key=lambda p: (p.item_name, p.item_type, str(p.item_id))):
        label = f"{purchase.item_name} ({purchase.item_type})"
        by_item.setdefault(label, []).append(purchase)

    rows: list[ItemPurchaseRow] = []
    for label, item_purchases in by_item.items():
        item_purchases.sort(key=lambda p: (p.purchase_date, str(p.id)))
        cumulative = 0
        previous: PurchaseRow | None = None
        for purchase in item_purchases:
            cumulative += purchase.quantity_added
            if previous is None:
                marker = INITIAL_PURCHASE
            elif purchase.purchase_vendor != previous.purchase_vendor:
                marker = VENDOR_CHANGED
            else:
                marker = SAME_VENDOR
            rows.append(
                ItemPurchaseRow(
                    item_label=label,
                    purchase=purchase,
                    vendor_change=marker,
                    cumulative_quantity=cumulative,
                )
            )
            previous = purchase
    return rows


class ReportSelector(BaseSelector[StockItem]):
    """Read-only reporting queries."""

    def _purchases(self, *criteria, newest_first: bool = True) -> list[PurchaseRow]:
        order = PurchaseHistory.purchase_date.desc() if newest_first else PurchaseHistory.purchase_date
        stmt = (
            select(PurchaseHistory, StockItem.name, StockItem.item_type)
            .join(StockItem, StockItem.id == PurchaseHistory.item_id)
            .where(*criteria)
            .order_by(order, PurchaseHistory.id)
        )
        return [
            PurchaseRow(
                id=purchase.id,
                item_id=purchase.item_id,
                item_name=name,
                item_type=item_type,
                purchase_vendor=purchase.purchase_vendor,
                quantity_added=purchase.quantity_added,
                purchase_date=ensure_utc(purchase.purchase_date),
                notes=purchase.notes,
            )
            for purchase, name, item_type in self.session.execute(stmt).all()
        ]

    def _issued(self, as_of: datetime, *criteria) -> list[IssuedRow]:
        stmt = (
            issued_rows_statement()
            .where(*criteria)
            .order_by(IssuedItem.issued_date.desc(), IssuedItem.id)
        )
        return [to_issued_row(row, as_of) for row in self.session.execute(stmt).all()]

    def assets(self) -> list[AssetRow]:
        stmt = select(Asset).order_by(Asset.created_at.desc(), Asset.item_number)
        return [
            AssetRow(
                id=asset.id,
                item_number=asset.item_number,
                item_name=asset.item_name,
                item_type=asset.item_type,
                purchase_date=asset.purchase_date,
                purchase_price=Decimal(asset.purchase_price),
                current_location=asset.current_location,
                status=AssetStatus(asset.status),
                discard_reason=asset.discard_reason,
                discard_date=ensure_utc(asset.discard_date),
            )
            for asset in self.session.execute(stmt).scalars()
        ]

    def discards(self, start: datetime, end: datetime) -> list[DiscardRow]:
        discarder = aliased(User)
        stmt = (
            select(DiscardedItem, StockItem.name, discarder.name)
            .join(StockItem, StockItem.id == DiscardedItem.item_id)
            .outerjoin(discarder, discarder.id == DiscardedItem.discarded_by)
            .where(DiscardedItem.discarded_date >= start, DiscardedItem.discarded_date <= end)
            .order_by(DiscardedItem.discarded_date.desc(), DiscardedItem.id)
        )
        return [
            DiscardRow(
                id=row.id,
                item_id=row.item_id,
                item_name=item_name,
                quantity_discarded=row.quantity_discarded,
                reason=DiscardReason(row.reason),
                discarded_by_name=by_name,
                notes=row.notes,
                discarded_date=ensure_utc(row.discarded_date),
            )
            for row, item_name, by_name in self.session.execute(stmt).all()
        ]

    def stock_report(self, start: datetime, end: datetime, as_of: datetime) -> StockReport:
        """
        Build the full report for [start, end] (inclusive).

        Raises:
            InvalidFieldError: start is after end.
        """
        if start > end:
            raise InvalidFieldError("date range", "start must not be after end")
        as_of = ensure_utc(as_of)

        issued = self._issued(
            as_of, IssuedItem.issued_date >= start, IssuedItem.issued_date <= end
        )
        returned = [row for row in issued if row.returned]
        purchases = self._purchases(
            PurchaseHistory.purchase_date >= start, PurchaseHistory.purchase_date <= end
        )
        discards = self.discards(start, end)
        assets = self.assets()
        per_item = item_purchase_history(purchases)

        summary = ReportSummary(
            total_quantity_issued=sum(row.quantity_issued for row in issued),
            issue_transactions=len(issued),
            returned_count=len(returned),
            active_count=sum(1 for row in issued if not row.returned),
            overdue_count=sum(1 for row in issued if row.is_overdue),
            total_assets=len(assets),
            active_assets=sum(1 for a in assets if a.status == AssetStatus.ACTIVE),
            discarded_assets=sum(1 for a in assets if a.status == AssetStatus.DISCARDED),
            active_asset_value=sum(
                (a.purchase_price for a in assets if a.status == AssetStatus.ACTIVE),
                Decimal("0.00"),
            ),
            purchase_transactions=len(purchases),
            total_quantity_purchased=sum(p.quantity_added for p in purchases),
            unique_vendors=len({p.purchase_vendor for p in purchases if p.purchase_vendor}),
            purchases_with_vendor=sum(1 for p in purchases if p.purchase_vendor),
            purchases_without_vendor=sum(1 for p in purchases if not p.purchase_vendor),
            vendor_change_count=sum(1 for r in per_item if r.vendor_change == VENDOR_CHANGED),
            total_quantity_discarded=sum(d.quantity_discarded for d in discards),
        )

        return StockReport(
            start=start,
            end=end,
            generated_at=as_of,
            issued_items=issued,
            returned_items=returned,
            stock_balance=StockSelector(self.session).list_items(),
            assets=assets,
            purchase_history=purchases,
            discards=discards,
            vendor_analysis=vendor_analysis(purchases),
            item_purchase_history=per_item,
            summary=summary,
        )

    def item_detail(self, item_id: UUID, as_of: datetime) -> ItemDetailReport:
        """
        Everything recorded about one stock item.

        Raises:
            StockItemNotFoundError: item does not exist.
        """
        item = StockSelector(self.session).get(item_id)
        purchases = self._purchases(PurchaseHistory.item_id == item_id)
        issued = self._issued(ensure_utc(as_of), IssuedItem.item_id == item_id)
        vendors = sorted({p.purchase_vendor for p in purchases if p.purchase_vendor})

        return ItemDetailReport(
            item=item,
            purchase_history=purchases,
            issued_items=issued,
            total_purchased=sum(p.quantity_added for p in purchases),
            total_issued=sum(row.quantity_issued for row in issued),
            unique_vendors=len(vendors),
            unique_holders=len({row.user_id for row in issued}),
            active_issues=sum(1 for row in issued if not row.returned),
            returned_issues=sum(1 for row in issued if row.returned),
            vendors=vendors,
        )
