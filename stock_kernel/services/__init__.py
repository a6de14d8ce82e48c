"""Services for the stock kernel (write side)."""

from stock_kernel.services.asset_service import AssetInfo, AssetService
from stock_kernel.services.issuance_service import IssuanceService, IssuedItemInfo
from stock_kernel.services.request_workflow import RequestInfo, RequestWorkflow
from stock_kernel.services.stock_item_service import (
    BulkImportResult,
    StockItemInfo,
    StockItemService,
)
from stock_kernel.services.stock_ledger import DiscardRecord, StockLedger
from stock_kernel.services.transfer_service import TransferInfo, TransferService
from stock_kernel.services.user_service import UserInfo, UserService

__all__ = [
    "AssetInfo",
    "AssetService",
    "BulkImportResult",
    "DiscardRecord",
    "IssuanceService",
    "IssuedItemInfo",
    "RequestInfo",
    "RequestWorkflow",
    "StockItemInfo",
    "StockItemService",
    "StockLedger",
    "TransferInfo",
    "TransferService",
    "UserInfo",
    "UserService",
]
