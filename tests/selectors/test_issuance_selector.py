"""
Tests for IssuanceSelector.

Covers:
- Status filters computed as of a given instant
- Holder and item filters
- Transfer history with names
"""

from datetime import timedelta

import pytest

from stock_kernel.exceptions import InvalidFieldError
from stock_kernel.selectors.issuance_selector import IssuanceSelector


@pytest.fixture
def selector(session):
    return IssuanceSelector(session)


@pytest.fixture
def three_issues(issuance, admin, approved_request, make_item, clock):
    """
    short:    due in 7 days, overdue after 10
    long:     due in 30 days, still active after 10
    returned: due in 7 days, returned straight away
    """
    gloves = make_item(name="Gloves", quantity=50)
    masks = make_item(name="Masks", quantity=50)

    short = issuance.issue(admin, approved_request((gloves, 1)).id, 7)[0]
    clock.advance(60)
    long = issuance.issue(admin, approved_request((masks, 2)).id, 30)[0]
    clock.advance(60)
    returned = issuance.issue(admin, approved_request((gloves, 3)).id, 7)[0]
    issuance.mark_returned(admin, returned.id)
    return {"short": short, "long": long, "returned": returned}


class TestListIssued:

    def test_newest_issue_first(self, selector, three_issues, clock):
        rows = selector.list_issued(clock.now())

        assert [row.id for row in rows] == [
            three_issues["returned"].id,
            three_issues["long"].id,
            three_issues["short"].id,
        ]
        assert rows[0].holder_name == "Gus Guest"
        assert rows[1].item_name == "Masks"
        assert rows[1].request_status == "approved"

    def test_status_as_of_ten_days_later(self, selector, three_issues, clock):
        later = clock.now() + timedelta(days=10)

        overdue = selector.list_issued(later, status="overdue")
        active = selector.list_issued(later, status="active")
        returned = selector.list_issued(later, status="returned")

        assert [row.id for row in overdue] == [three_issues["short"].id]
        assert overdue[0].days_overdue == 3
        assert [row.id for row in active] == [three_issues["long"].id]
        assert [row.id for row in returned] == [three_issues["returned"].id]
        assert returned[0].is_overdue is False

    def test_nothing_overdue_today(self, selector, three_issues, clock):
        assert selector.overdue(clock.now()) == []

    def test_item_filter(self, selector, three_issues, clock):
        rows = selector.list_issued(clock.now(), item_id=three_issues["long"].item_id)

        assert [row.id for row in rows] == [three_issues["long"].id]
        assert rows[0].current_stock_balance == 48

    def test_unknown_status(self, selector, clock):
        with pytest.raises(InvalidFieldError):
            selector.list_issued(clock.now(), status="lost")


def test_held_by_excludes_returned(selector, three_issues, guest, other_guest, transfers, clock):
    transfers.transfer(guest, three_issues["long"].id, guest.user_id, other_guest.user_id)

    mine = selector.held_by(guest.user_id, clock.now())
    theirs = selector.held_by(other_guest.user_id, clock.now())

    assert [row.id for row in mine] == [three_issues["short"].id]
    assert [row.id for row in theirs] == [three_issues["long"].id]
    assert theirs[0].holder_name == "Olive Other"


class TestTransferHistory:

    def test_oldest_first_with_names(
        self, selector, three_issues, transfers, guest, other_guest, admin, clock
    ):
        issued_id = three_issues["short"].id
        transfers.transfer(guest, issued_id, guest.user_id, other_guest.user_id, notes="cover")
        clock.advance(60)
        transfers.transfer(admin, issued_id, other_guest.user_id, guest.user_id)

        rows = selector.transfer_history(issued_item_id=issued_id)

        assert [(row.from_user_name, row.to_user_name) for row in rows] == [
            ("Gus Guest", "Olive Other"),
            ("Olive Other", "Gus Guest"),
        ]
        assert rows[0].item_name == "Gloves"
        assert rows[0].notes == "cover"

    def test_user_filter(self, selector, three_issues, transfers, guest, other_guest, admin_user):
        transfers.transfer(guest, three_issues["short"].id, guest.user_id, other_guest.user_id)

        assert len(selector.transfer_history(user_id=other_guest.user_id)) == 1
        assert selector.transfer_history(user_id=admin_user.id) == []
