from datetime import datetime
from decimal import Decimal

import pytest

from coopdesk.core.exceptions import CycleNotConfirmed
from coopdesk.models import (
    Loan,
    LoanStatus,
    Member,
    PayrollCycle,
    PayrollCycleStatus,
    PayrollLine,
    PayrollLineStatus,
    PayrollLineType,
    Repayment,
    Transaction,
    TransactionType,
)
from coopdesk.services.payroll import confirm_finance, edit_line, generate_draft, post_cycle

POSTED_AT = datetime(2024, 3, 30, 18, 0)


@pytest.fixture
def confirmed_cycle(db, make_member, make_loan):
    """Three savers at 1,000 and a 2,000 loan due in full."""
    savers = [make_member(monthly_contribution="1000.00") for _ in range(3)]
    borrower = make_member(monthly_contribution="0.00")
    loan = make_loan(borrower, balance="2000.00", monthly_payment="2000.00")

    cycle = generate_draft(db, "2024-03")
    confirm_finance(db, cycle.id, "Treasurer")
    return {"cycle": cycle, "savers": savers, "borrower": borrower, "loan": loan}


def _snapshot(db):
    return {
        "balances": sorted((str(m.id), m.balance, m.loan_balance) for m in db.query(Member).all()),
        "loans": sorted((str(l.id), l.balance, l.status) for l in db.query(Loan).all()),
        "repayments": db.query(Repayment).count(),
        "transactions": db.query(Transaction).count(),
        "lines": sorted((str(l.id), l.status, l.actual_amount) for l in db.query(PayrollLine).all()),
        "cycles": sorted((c.period, c.status) for c in db.query(PayrollCycle).all()),
    }


def test_posting_applies_every_line(db, confirmed_cycle):
    cycle = confirmed_cycle["cycle"]

    summary = post_cycle(db, cycle.id, "Treasurer", now=POSTED_AT)

    assert summary["lines_posted"] == 4
    assert summary["lines_excluded"] == 0
    assert summary["savings_total"] == Decimal("3000.00")
    assert summary["repayments_total"] == Decimal("2000.00")
    assert summary["loans_completed"] == 1

    for saver in confirmed_cycle["savers"]:
        db.refresh(saver)
        assert saver.balance == Decimal("1000.00")
        assert saver.total_contributions == Decimal("1000.00")

    loan = confirmed_cycle["loan"]
    db.refresh(loan)
    assert loan.balance == Decimal("0.00")
    assert loan.status == LoanStatus.COMPLETED

    borrower = confirmed_cycle["borrower"]
    db.refresh(borrower)
    assert borrower.loan_balance == Decimal("0.00")

    [repayment] = db.query(Repayment).all()
    assert repayment.amount == Decimal("2000.00")
    assert repayment.loan_id == loan.id

    transactions = db.query(Transaction).all()
    assert len(transactions) == 4
    assert sorted(t.type for t in transactions) == sorted(
        [TransactionType.CONTRIBUTION] * 3 + [TransactionType.LOAN_REPAYMENT]
    )
    assert len({t.reference for t in transactions}) == 4
    assert all(t.reference.startswith("COOP-") for t in transactions)

    db.refresh(cycle)
    assert cycle.status == PayrollCycleStatus.POSTED
    assert cycle.posted_by == "Treasurer"
    assert cycle.posted_at == POSTED_AT
    assert all(line.status == PayrollLineStatus.POSTED for line in cycle.lines)
    assert all(line.posted_at == POSTED_AT for line in cycle.lines)


def test_failed_posting_leaves_nothing_behind(db, confirmed_cycle, monkeypatch):
    before = _snapshot(db)
    calls = {"n": 0}

    def flaky_reference(prefix="COOP"):
        calls["n"] += 1
        if calls["n"] == 3:
            raise RuntimeError("ledger unavailable")
        return f"{prefix}-TEST-{calls['n']}"

    monkeypatch.setattr("coopdesk.services.payroll.generate_reference", flaky_reference)

    with pytest.raises(RuntimeError):
        post_cycle(db, confirmed_cycle["cycle"].id, "Treasurer", now=POSTED_AT)

    db.expire_all()
    assert _snapshot(db) == before
    assert db.query(PayrollCycle).one().status == PayrollCycleStatus.FINANCE_CONFIRMED


def test_zero_amount_line_is_excluded_without_ledger_effect(db, make_member):
    skipped = make_member(monthly_contribution="1000.00")
    paid = make_member(monthly_contribution="1000.00")
    cycle = generate_draft(db, "2024-03")
    skipped_line = next(line for line in cycle.lines if line.member_id == skipped.id)
    edit_line(db, skipped_line.id, 0, "pending", "On unpaid leave")
    confirm_finance(db, cycle.id, "Treasurer")

    summary = post_cycle(db, cycle.id, "Treasurer")

    assert summary["lines_posted"] == 1
    assert summary["lines_excluded"] == 1
    db.refresh(skipped_line)
    assert skipped_line.status == PayrollLineStatus.EXCLUDED
    db.refresh(skipped)
    assert skipped.balance == Decimal("0.00")
    db.refresh(paid)
    assert paid.balance == Decimal("1000.00")
    assert db.query(Transaction).filter(Transaction.member_id == skipped.id).count() == 0


def test_excluded_lines_are_left_alone(db, make_member):
    member = make_member(monthly_contribution="1000.00")
    cycle = generate_draft(db, "2024-03")
    edit_line(db, cycle.lines[0].id, 1000, "excluded")
    confirm_finance(db, cycle.id, "Treasurer")

    summary = post_cycle(db, cycle.id, "Treasurer")

    assert summary["lines_posted"] == 0
    assert summary["lines_excluded"] == 0
    db.refresh(member)
    assert member.balance == Decimal("0.00")
    assert db.query(Transaction).count() == 0


def test_loan_line_is_clamped_and_records_applied_amount(db, make_member, make_loan):
    borrower = make_member(monthly_contribution="0.00")
    loan = make_loan(borrower, balance="3000.00", monthly_payment="10000.00")
    cycle = generate_draft(db, "2024-03")
    [line] = [l for l in cycle.lines if l.line_type == PayrollLineType.LOAN_REPAYMENT]
    edit_line(db, line.id, "4500.00")
    confirm_finance(db, cycle.id, "Treasurer")

    summary = post_cycle(db, cycle.id, "Treasurer")

    assert summary["repayments_total"] == Decimal("3000.00")
    db.refresh(line)
    assert line.status == PayrollLineStatus.POSTED
    assert line.actual_amount == Decimal("3000.00")
    assert "Clamped from 4,500.00 to outstanding loan balance (3,000.00)." in line.reason
    db.refresh(loan)
    assert loan.status == LoanStatus.COMPLETED
    assert db.query(Repayment).one().amount == Decimal("3000.00")


def test_partial_repayment_keeps_loan_open(db, make_member, make_loan):
    borrower = make_member(monthly_contribution="0.00")
    loan = make_loan(borrower, balance="10000.00", monthly_payment="2500.00")
    cycle = generate_draft(db, "2024-03")
    confirm_finance(db, cycle.id, "Treasurer")

    post_cycle(db, cycle.id, "Treasurer")

    db.refresh(loan)
    db.refresh(borrower)
    assert loan.balance == Decimal("7500.00")
    assert loan.status == LoanStatus.APPROVED
    assert borrower.loan_balance == Decimal("7500.00")


def test_posting_requires_finance_confirmation(db, make_member):
    member = make_member()
    cycle = generate_draft(db, "2024-03")

    with pytest.raises(CycleNotConfirmed):
        post_cycle(db, cycle.id, "Treasurer")

    db.refresh(member)
    assert member.balance == Decimal("0.00")
    db.refresh(cycle)
    assert cycle.status == PayrollCycleStatus.DRAFT


def test_posted_cycle_cannot_be_posted_again(db, confirmed_cycle):
    cycle = confirmed_cycle["cycle"]
    post_cycle(db, cycle.id, "Treasurer", now=POSTED_AT)
    after_first = _snapshot(db)

    with pytest.raises(CycleNotConfirmed) as excinfo:
        post_cycle(db, cycle.id, "Someone else")

    assert excinfo.value.status == PayrollCycleStatus.POSTED.value
    db.expire_all()
    assert _snapshot(db) == after_first
    assert db.query(PayrollCycle).one().posted_by == "Treasurer"
