"""ORM models.  Importing this package registers every table on Base.metadata."""

from stock_kernel.models.asset import Asset, AssetStatus
from stock_kernel.models.discarded_item import DiscardedItem, DiscardReason
from stock_kernel.models.issued_item import IssuedItem, ItemTransfer
from stock_kernel.models.purchase_history import PurchaseHistory
from stock_kernel.models.request import (
    ISSUED_DISPLAY_STATUS,
    Request,
    RequestStatus,
    derive_display_status,
)
from stock_kernel.models.stock_item import StockCategory, StockItem, UnitType
from stock_kernel.models.user import User

__all__ = [
    "Asset",
    "AssetStatus",
    "DiscardReason",
    "DiscardedItem",
    "ISSUED_DISPLAY_STATUS",
    "IssuedItem",
    "ItemTransfer",
    "PurchaseHistory",
    "Request",
    "RequestStatus",
    "StockCategory",
    "StockItem",
    "UnitType",
    "User",
    "derive_display_status",
]
