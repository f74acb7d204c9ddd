from datetime import datetime
from decimal import Decimal

import pytest

from coopdesk.core.exceptions import CycleAlreadyExists, InvalidPeriod
from coopdesk.models import (
    LoanStatus,
    MemberStatus,
    PaymentStatus,
    PaymentType,
    PayrollCycle,
    PayrollCycleStatus,
    PayrollLine,
    PayrollLineStatus,
    PayrollLineType,
)
from coopdesk.services.payroll import build_draft_lines, generate_draft
from coopdesk.services.voucher import build_voucher_dataset


def _loan_lines(cycle):
    return [line for line in cycle.lines if line.line_type == PayrollLineType.LOAN_REPAYMENT]


def _savings_lines(cycle):
    return [line for line in cycle.lines if line.line_type == PayrollLineType.SAVINGS]


def test_draft_has_savings_line_per_eligible_member(db, make_member, admin):
    saver = make_member(monthly_contribution="2500.00")
    make_member(monthly_contribution="0.00")
    make_member(status=MemberStatus.PENDING)
    make_member(voucher_enabled=False)

    cycle = generate_draft(db, "2024-03", created_by="Back Office")

    assert cycle.status == PayrollCycleStatus.DRAFT
    assert cycle.created_by == "Back Office"
    savings = _savings_lines(cycle)
    assert len(savings) == 1
    assert savings[0].member_id == saver.id
    assert savings[0].expected_amount == Decimal("2500.00")
    assert savings[0].actual_amount == Decimal("2500.00")
    assert savings[0].status == PayrollLineStatus.PENDING


def test_loan_line_is_net_of_direct_repayment(db, make_member, make_loan, make_payment):
    member = make_member()
    loan = make_loan(member, balance="50000.00", monthly_payment="10000.00")
    make_payment(member, "4000.00", datetime(2024, 3, 10))

    cycle = generate_draft(db, "2024-03")

    [line] = _loan_lines(cycle)
    assert line.loan_id == loan.id
    assert line.expected_amount == Decimal("6000.00")
    assert line.reason == "Adjusted for direct repayments this month by member (4,000.00)."


def test_direct_repayment_outside_month_or_unapproved_is_ignored(db, make_member, make_loan, make_payment):
    member = make_member()
    make_loan(member, balance="50000.00", monthly_payment="10000.00")
    make_payment(member, "4000.00", datetime(2024, 2, 29, 23, 59))
    make_payment(member, "4000.00", datetime(2024, 4, 1))
    make_payment(member, "4000.00", datetime(2024, 3, 5), status=PaymentStatus.PENDING)
    make_payment(member, "4000.00", datetime(2024, 3, 5), type=PaymentType.CONTRIBUTION)

    cycle = generate_draft(db, "2024-03")

    [line] = _loan_lines(cycle)
    assert line.expected_amount == Decimal("10000.00")
    assert line.reason is None


def test_loan_line_never_exceeds_outstanding_balance(db, make_member, make_loan):
    member = make_member()
    make_loan(member, balance="3000.00", monthly_payment="10000.00")

    cycle = generate_draft(db, "2024-03")

    [line] = _loan_lines(cycle)
    assert line.expected_amount == Decimal("3000.00")


def test_loan_fully_covered_by_direct_repayment_gets_no_line(db, make_member, make_loan, make_payment):
    member = make_member()
    make_loan(member, balance="50000.00", monthly_payment="10000.00")
    make_payment(member, "12000.00", datetime(2024, 3, 2))

    cycle = generate_draft(db, "2024-03")

    assert _loan_lines(cycle) == []


def test_only_approved_loans_with_balance_get_lines(db, make_member, make_loan):
    member = make_member()
    make_loan(member, balance="5000.00", monthly_payment="1000.00", status=LoanStatus.PENDING)
    make_loan(member, balance="0.00", monthly_payment="1000.00")

    assert [line for line in build_draft_lines(db, "2024-03") if line["loan_id"]] == []


def test_second_draft_for_same_period_is_rejected(db, make_member):
    make_member()
    make_member()
    generate_draft(db, "2024-03")

    with pytest.raises(CycleAlreadyExists):
        generate_draft(db, "2024-03")

    assert db.query(PayrollCycle).count() == 1
    assert db.query(PayrollLine).count() == 2


def test_invalid_period_writes_nothing(db, make_member):
    make_member()

    with pytest.raises(InvalidPeriod):
        generate_draft(db, "2024-3")

    assert db.query(PayrollCycle).count() == 0


def test_draft_savers_match_voucher_rows(db, make_member):
    on_time = make_member(monthly_contribution="1000.00", created_at=datetime(2024, 3, 15, 17, 0))
    late = make_member(monthly_contribution="1000.00", created_at=datetime(2024, 3, 20, 9, 0))

    march = generate_draft(db, "2024-03")
    march_voucher = build_voucher_dataset(db, "2024-03")

    assert {line.member_id for line in _savings_lines(march)} == {on_time.id}
    assert {row["member_id"] for row in march_voucher["rows"]} == {on_time.id}

    april = generate_draft(db, "2024-04")
    april_voucher = build_voucher_dataset(db, "2024-04")

    assert {line.member_id for line in _savings_lines(april)} == {on_time.id, late.id}
    assert {row["member_id"] for row in april_voucher["rows"]} == {on_time.id, late.id}


def test_concurrent_draft_hits_unique_period(db, make_member, monkeypatch):
    make_member()
    make_member()
    generate_draft(db, "2024-03")

    # A racing request that passed the existence check before the first commit
    monkeypatch.setattr("coopdesk.services.payroll.get_cycle_by_period", lambda db, period: None)

    with pytest.raises(CycleAlreadyExists):
        generate_draft(db, "2024-03")

    assert db.query(PayrollCycle).count() == 1
    assert db.query(PayrollLine).count() == 2
