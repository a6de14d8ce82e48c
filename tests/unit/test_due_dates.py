"""
Tests for the pure due-date functions.

Covers:
- Return period bounds
- Overdue flag and floored day count
- Status label
- Repeated calls with the same inputs agree
"""

from datetime import datetime, timedelta, timezone

import pytest

from stock_kernel.domain.due_dates import (
    MAX_RETURN_DAYS,
    MIN_RETURN_DAYS,
    days_overdue,
    is_overdue,
    issuance_status,
    return_due_date,
    validate_return_period,
)
from stock_kernel.exceptions import InvalidReturnPeriodError, ValidationError

ISSUED_AT = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestValidateReturnPeriod:

    @pytest.mark.parametrize("days", [MIN_RETURN_DAYS, 7, 14, MAX_RETURN_DAYS])
    def test_accepts_days_in_range(self, days):
        assert validate_return_period(days) == days

    @pytest.mark.parametrize("days", [0, -1, MAX_RETURN_DAYS + 1, 7.5, "7", None, True])
    def test_rejects_days_out_of_range_or_not_int(self, days):
        with pytest.raises(InvalidReturnPeriodError) as exc_info:
            validate_return_period(days)

        assert exc_info.value.minimum == 1
        assert exc_info.value.maximum == 365

    def test_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            validate_return_period(0)


class TestReturnDueDate:

    def test_adds_whole_days(self):
        assert return_due_date(ISSUED_AT, 7) == ISSUED_AT + timedelta(days=7)

    def test_validates_period(self):
        with pytest.raises(InvalidReturnPeriodError):
            return_due_date(ISSUED_AT, 366)


class TestOverdue:

    def test_not_overdue_before_due(self):
        due = ISSUED_AT + timedelta(days=7)
        now = due - timedelta(seconds=1)

        assert is_overdue(now, due, returned=False) is False
        assert days_overdue(now, due, returned=False) == 0

    def test_not_overdue_exactly_at_due(self):
        due = ISSUED_AT + timedelta(days=7)

        assert is_overdue(due, due, returned=False) is False

    def test_overdue_after_due(self):
        due = ISSUED_AT + timedelta(days=7)
        now = due + timedelta(days=3)

        assert is_overdue(now, due, returned=False) is True
        assert days_overdue(now, due, returned=False) == 3

    def test_days_overdue_is_floored(self):
        due = ISSUED_AT + timedelta(days=7)
        now = due + timedelta(days=2, hours=23, minutes=59)

        assert days_overdue(now, due, returned=False) == 2

    def test_one_second_late_is_zero_days_but_overdue(self):
        due = ISSUED_AT + timedelta(days=7)
        now = due + timedelta(seconds=1)

        assert is_overdue(now, due, returned=False) is True
        assert days_overdue(now, due, returned=False) == 0

    def test_returned_item_is_never_overdue(self):
        due = ISSUED_AT + timedelta(days=7)
        now = due + timedelta(days=30)

        assert is_overdue(now, due, returned=True) is False
        assert days_overdue(now, due, returned=True) == 0

    def test_repeated_calls_agree(self):
        due = ISSUED_AT + timedelta(days=7)
        now = ISSUED_AT + timedelta(days=10)

        results = {(is_overdue(now, due, False), days_overdue(now, due, False)) for _ in range(5)}

        assert results == {(True, 3)}


class TestIssuanceStatus:

    def test_labels(self):
        due = ISSUED_AT + timedelta(days=7)

        assert issuance_status(ISSUED_AT, due, returned=False) == "active"
        assert issuance_status(due + timedelta(days=1), due, returned=False) == "overdue"
        assert issuance_status(due + timedelta(days=1), due, returned=True) == "returned"
