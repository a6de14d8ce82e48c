"""
stock_services -- Package init and public API.

Responsibility:
    Caller-facing operations over the stock kernel.  This is the layer
    that owns transaction boundaries, reads runtime configuration and
    binds the per-operation log context.

Architecture position:
    Services -- orchestration over stock_kernel and stock_config.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        stock_services/ -> stock_kernel/   (allowed)
        stock_services/ -> stock_config/   (allowed)
        stock_kernel/   -> stock_services/ (FORBIDDEN)
        stock_kernel/   -> stock_config/   (FORBIDDEN)

Invariants enforced:
    - DI transparency: all kernel service wiring is centralised in
      KernelServices; no service self-constructs its ledger here.
    - One operation, one transaction: every InventoryOperations method
      runs inside its own session_scope().
"""

from stock_kernel.logging_config import get_logger
from stock_services.inventory_operations import InventoryOperations
from stock_services.kernel_services import KernelServices

logger = get_logger("services")

__all__ = [
    "InventoryOperations",
    "KernelServices",
]
