"""
Due-date arithmetic for issued items.

Pure functions of (now, return_due, returned).  Nothing here touches the
database or a clock; callers pass ``now`` in so repeated calls with the
same inputs always agree.
"""

from datetime import datetime, timedelta

from stock_kernel.exceptions import InvalidReturnPeriodError

MIN_RETURN_DAYS = 1
MAX_RETURN_DAYS = 365

_ONE_DAY = timedelta(days=1)


def validate_return_period(days: object) -> int:
    """Return ``days`` if it is an int in [1, 365], else raise InvalidReturnPeriodError."""
    if (
        isinstance(days, bool)
        or not isinstance(days, int)
        or not MIN_RETURN_DAYS <= days <= MAX_RETURN_DAYS
    ):
        raise InvalidReturnPeriodError(days, MIN_RETURN_DAYS, MAX_RETURN_DAYS)
    return days


def return_due_date(issued_at: datetime, return_due_in_days: int) -> datetime:
    return issued_at + timedelta(days=validate_return_period(return_due_in_days))


def is_overdue(now: datetime, return_due: datetime, returned: bool) -> bool:
    """An item is overdue when it is still out and its due date has passed."""
    return not returned and now > return_due


def days_overdue(now: datetime, return_due: datetime, returned: bool) -> int:
    """Whole days past due (floored); 0 when not overdue."""
    if not is_overdue(now, return_due, returned):
        return 0
    return (now - return_due) // _ONE_DAY


def issuance_status(now: datetime, return_due: datetime, returned: bool) -> str:
    """One of ``returned``, ``overdue`` or ``active``."""
    if returned:
        return "returned"
    if is_overdue(now, return_due, returned):
        return "overdue"
    return "active"
