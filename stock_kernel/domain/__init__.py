"""
Pure domain layer.

Value objects, the actor context, the clock and due-date arithmetic.
Nothing here opens a session or reads the wall clock (except
SystemClock).  Import ``stock_kernel.domain.stock_import`` directly; it
depends on the model enums and is kept out of this package namespace.
"""

from stock_kernel.domain.actor import ADMIN_ROLES, ActorContext, UserRole
from stock_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from stock_kernel.domain.due_dates import (
    MAX_RETURN_DAYS,
    MIN_RETURN_DAYS,
    days_overdue,
    is_overdue,
    issuance_status,
    return_due_date,
    validate_return_period,
)
from stock_kernel.domain.values import (
    RequestLine,
    lines_from_json,
    lines_to_json,
    require_positive_quantity,
    validate_lines,
)

__all__ = [
    "ADMIN_ROLES",
    "ActorContext",
    "Clock",
    "DeterministicClock",
    "MAX_RETURN_DAYS",
    "MIN_RETURN_DAYS",
    "RequestLine",
    "SystemClock",
    "UserRole",
    "days_overdue",
    "is_overdue",
    "issuance_status",
    "lines_from_json",
    "lines_to_json",
    "require_positive_quantity",
    "return_due_date",
    "validate_lines",
    "validate_return_period",
]
