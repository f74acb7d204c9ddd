from decimal import Decimal

import pytest

from coopdesk.core.exceptions import ValidationError
from coopdesk.models import LoanStatus
from coopdesk.services.loan import (
    calculate_loan_details,
    find_loan_balance_drift,
    outstanding_loan_balance,
    resync_loan_balances,
    to_money,
)


def test_to_money_rounds_half_up():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(3) == Decimal("3.00")


def test_calculate_loan_details_flat_interest():
    details = calculate_loan_details("10000", 3, 5)

    assert details["interest"] == Decimal("500.00")
    assert details["total_repayable"] == Decimal("10500.00")
    assert details["monthly_payment"] == Decimal("3500.00")


def test_calculate_loan_details_uses_configured_rate():
    details = calculate_loan_details("1000", 4)

    assert details["interest_rate"] == Decimal("5")
    assert details["monthly_payment"] == Decimal("262.50")


@pytest.mark.parametrize("principal,months", [("0", 3), ("-5", 3), ("100", 0)])
def test_calculate_loan_details_rejects_bad_input(principal, months):
    with pytest.raises(ValidationError):
        calculate_loan_details(principal, months)


def test_outstanding_balance_counts_open_approved_loans(db, make_member, make_loan):
    member = make_member()
    make_loan(member, balance="4000.00", monthly_payment="1000.00")
    make_loan(member, balance="1500.00", monthly_payment="500.00")
    make_loan(member, balance="9000.00", monthly_payment="500.00", status=LoanStatus.PENDING)

    assert outstanding_loan_balance(db, member.id) == Decimal("5500.00")


def test_drift_detection_and_resync(db, make_member, make_loan):
    in_sync = make_member()
    make_loan(in_sync, balance="4000.00", monthly_payment="1000.00")
    drifted = make_member(loan_balance="250.00")
    make_loan(drifted, balance="1000.00", monthly_payment="500.00")

    [row] = find_loan_balance_drift(db)
    assert row["member_id"] == drifted.id
    assert row["cached_loan_balance"] == Decimal("1250.00")
    assert row["outstanding_loan_balance"] == Decimal("1000.00")
    assert row["difference"] == Decimal("250.00")

    assert resync_loan_balances(db) == 1
    assert find_loan_balance_drift(db) == []
    db.refresh(drifted)
    assert drifted.loan_balance == Decimal("1000.00")
    assert resync_loan_balances(db) == 0
