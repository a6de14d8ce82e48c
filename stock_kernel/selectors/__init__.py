"""Selectors for the stock kernel (read side)."""

from stock_kernel.selectors.issuance_selector import IssuanceSelector, IssuedRow, TransferRow
from stock_kernel.selectors.report_selector import (
    ItemDetailReport,
    ReportSelector,
    StockReport,
)
from stock_kernel.selectors.request_selector import RequestRow, RequestSelector
from stock_kernel.selectors.stock_selector import StockRow, StockSelector

__all__ = [
    "IssuanceSelector",
    "IssuedRow",
    "ItemDetailReport",
    "ReportSelector",
    "RequestRow",
    "RequestSelector",
    "StockReport",
    "StockRow",
    "StockSelector",
    "TransferRow",
]
