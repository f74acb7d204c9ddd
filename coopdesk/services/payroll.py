"""Monthly payroll deduction cycle: draft, edit, finance confirmation and posting."""

import logging
import secrets
import time
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coopdesk.core.exceptions import (
    CycleAlreadyExists,
    CycleNotConfirmed,
    CycleNotEditable,
    CycleNotFound,
    LineNotFound,
    PostingError,
    ValidationError,
)
from coopdesk.models.member import Member, MemberRole, MemberStatus
from coopdesk.models.payroll import (
    PayrollCycle,
    PayrollCycleStatus,
    PayrollLine,
    PayrollLineStatus,
    PayrollLineType,
)
from coopdesk.models.transaction import (
    Loan,
    LoanStatus,
    Payment,
    PaymentStatus,
    PaymentType,
    Repayment,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from coopdesk.services.loan import to_money
from coopdesk.services.period import first_voucher_period, is_month_end_due, month_range, parse_period, period_of

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "SYSTEM_AUTO"
ZERO = Decimal("0.00")
EDITABLE_LINE_STATUSES = (PayrollLineStatus.PENDING, PayrollLineStatus.EXCLUDED)

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(number: int) -> str:
    digits = ""
    while number:
        number, remainder = divmod(number, 36)
        digits = _BASE36[remainder] + digits
    return digits or "0"


def generate_reference(prefix: str = "COOP") -> str:
    """Transaction reference, e.g. COOP-LZ3K9Q1A-7F3B9C."""
    return f"{prefix}-{_base36(int(time.time() * 1000))}-{secrets.token_hex(3).upper()}"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def get_cycle(db: Session, cycle_id: UUID) -> PayrollCycle:
    cycle = db.query(PayrollCycle).filter(PayrollCycle.id == cycle_id).first()
    if not cycle:
        raise CycleNotFound(cycle_id)
    return cycle


def get_cycle_by_period(db: Session, period: str) -> Optional[PayrollCycle]:
    return db.query(PayrollCycle).filter(PayrollCycle.period == period).first()


def list_cycles(db: Session, limit: int = 12) -> List[PayrollCycle]:
    """Most recent cycles first."""
    return db.query(PayrollCycle).order_by(PayrollCycle.period.desc()).limit(limit).all()


def _lock_cycle(db: Session, cycle_id: UUID) -> PayrollCycle:
    """Load a cycle with a row lock held until the transaction ends."""
    cycle = db.query(PayrollCycle).filter(
        PayrollCycle.id == cycle_id
    ).with_for_update().populate_existing().first()
    if not cycle:
        raise CycleNotFound(cycle_id)
    return cycle


def line_amount(line: PayrollLine) -> Decimal:
    """Amount a line will post: the admin-edited amount if set, else the computed one."""
    raw = line.actual_amount if line.actual_amount is not None else line.expected_amount
    return max(ZERO, to_money(raw or 0))


def cycle_totals(cycle: PayrollCycle) -> Dict:
    """Line counts and amounts for a cycle, grouped the way the month-end screen shows them."""
    totals = {
        "line_count": len(cycle.lines),
        "pending_lines": 0,
        "pending_amount": ZERO,
        "excluded_lines": 0,
        "posted_lines": 0,
        "posted_amount": ZERO,
        "expected_savings": ZERO,
        "expected_loan_repayments": ZERO,
    }
    for line in cycle.lines:
        expected = to_money(line.expected_amount or 0)
        if line.line_type == PayrollLineType.SAVINGS:
            totals["expected_savings"] += expected
        else:
            totals["expected_loan_repayments"] += expected

        if line.status == PayrollLineStatus.PENDING:
            totals["pending_lines"] += 1
            totals["pending_amount"] += line_amount(line)
        elif line.status == PayrollLineStatus.EXCLUDED:
            totals["excluded_lines"] += 1
        else:
            totals["posted_lines"] += 1
            totals["posted_amount"] += to_money(line.actual_amount or 0)
    return totals


# ---------------------------------------------------------------------------
# Draft generation
# ---------------------------------------------------------------------------

def build_draft_lines(db: Session, period: str) -> List[Dict]:
    """
    Compute the deduction lines for a period without writing anything.

    Savings lines come from every active, voucher-enabled member with a
    monthly contribution whose first voucher period has been reached, so the
    draft lists the same savers as the voucher. Loan lines schedule the
    smaller of the monthly payment and the outstanding balance, net of
    approved direct repayments the owner made during the month.
    """
    start, end = month_range(period)

    savers = db.query(Member).filter(
        Member.role == MemberRole.MEMBER,
        Member.status == MemberStatus.ACTIVE,
        Member.voucher_enabled.is_(True),
        Member.monthly_contribution > 0
    ).order_by(Member.created_at, Member.id).all()

    active_loans = db.query(Loan).filter(
        Loan.status == LoanStatus.APPROVED,
        Loan.balance > 0
    ).order_by(Loan.created_at, Loan.id).all()

    direct_repayments = db.query(
        Payment.member_id,
        func.sum(Payment.amount)
    ).filter(
        Payment.type == PaymentType.LOAN_REPAYMENT,
        Payment.status == PaymentStatus.APPROVED,
        Payment.date >= start,
        Payment.date < end
    ).group_by(Payment.member_id).all()

    direct_by_member = {member_id: to_money(total or 0) for member_id, total in direct_repayments}

    lines: List[Dict] = []

    for saver in savers:
        amount = to_money(saver.monthly_contribution or 0)
        if amount <= 0:
            continue
        # Same rule as the voucher: no deduction before the first voucher period
        if saver.created_at and first_voucher_period(saver.created_at) > period:
            continue
        lines.append({
            "member_id": saver.id,
            "loan_id": None,
            "line_type": PayrollLineType.SAVINGS,
            "expected_amount": amount,
            "actual_amount": amount,
            "reason": None,
        })

    for loan in active_loans:
        scheduled = min(to_money(loan.monthly_payment or 0), to_money(loan.balance))
        direct_paid = direct_by_member.get(loan.member_id, ZERO)
        due = max(ZERO, scheduled - direct_paid)
        if due <= 0:
            continue
        lines.append({
            "member_id": loan.member_id,
            "loan_id": loan.id,
            "line_type": PayrollLineType.LOAN_REPAYMENT,
            "expected_amount": due,
            "actual_amount": due,
            "reason": f"Adjusted for direct repayments this month by member ({direct_paid:,.2f})." if direct_paid > 0 else None,
        })

    return lines


def generate_draft(
    db: Session,
    period: str,
    created_by: str = None
) -> PayrollCycle:
    """
    Create the DRAFT cycle for a period together with all its lines.

    The cycle and its lines are committed together. A second request for the
    same period raises CycleAlreadyExists and writes nothing.
    """
    parse_period(period)
    period = period.strip()

    if get_cycle_by_period(db, period):
        raise CycleAlreadyExists(period)

    try:
        cycle = PayrollCycle(
            period=period,
            status=PayrollCycleStatus.DRAFT,
            created_by=created_by
        )
        db.add(cycle)
        db.flush()

        lines = build_draft_lines(db, period)
        for data in lines:
            db.add(PayrollLine(cycle_id=cycle.id, status=PayrollLineStatus.PENDING, **data))

        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent draft for the same period
        db.rollback()
        raise CycleAlreadyExists(period)
    except Exception:
        db.rollback()
        logger.exception("Failed to generate payroll draft for %s", period)
        raise

    db.refresh(cycle)
    logger.info("Generated payroll draft %s with %d line(s)", period, len(lines))
    return cycle


# ---------------------------------------------------------------------------
# Draft editing and finance confirmation
# ---------------------------------------------------------------------------

def _coerce_line_status(status) -> PayrollLineStatus:
    if isinstance(status, PayrollLineStatus):
        value = status
    else:
        try:
            value = PayrollLineStatus(str(status or "").strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown line status '{status}'")
    if value not in EDITABLE_LINE_STATUSES:
        raise ValidationError("Line status can only be set to pending or excluded")
    return value


def edit_line(
    db: Session,
    line_id: UUID,
    actual_amount,
    status=PayrollLineStatus.PENDING,
    reason: str = None
) -> PayrollLine:
    """Overwrite a line's amount, status and reason while its cycle is DRAFT."""
    amount = to_money(actual_amount)
    if amount < 0:
        raise ValidationError("Actual amount cannot be negative")
    new_status = _coerce_line_status(status)

    line = db.query(PayrollLine).filter(PayrollLine.id == line_id).first()
    if not line:
        raise LineNotFound(line_id)

    cycle = _lock_cycle(db, line.cycle_id)
    if cycle.status != PayrollCycleStatus.DRAFT:
        db.rollback()
        raise CycleNotEditable(cycle.id, cycle.status.value)

    line.actual_amount = amount
    line.status = new_status
    line.reason = (reason or "").strip() or None

    db.commit()
    db.refresh(line)
    return line


def confirm_finance(
    db: Session,
    cycle_id: UUID,
    confirmed_by: str,
    now: datetime = None
) -> PayrollCycle:
    """Record that salaries were paid and the deductions reached the cooperative account."""
    cycle = _lock_cycle(db, cycle_id)
    if cycle.status != PayrollCycleStatus.DRAFT:
        db.rollback()
        raise CycleNotEditable(cycle.id, cycle.status.value)

    cycle.status = PayrollCycleStatus.FINANCE_CONFIRMED
    cycle.finance_confirmed_by = confirmed_by
    cycle.finance_confirmed_at = now or datetime.now()

    db.commit()
    db.refresh(cycle)
    logger.info("Payroll cycle %s finance-confirmed by %s", cycle.period, confirmed_by)
    return cycle


# ---------------------------------------------------------------------------
# Posting
# ---------------------------------------------------------------------------

def _post_savings_line(db: Session, cycle: PayrollCycle, line: PayrollLine, member: Member, amount: Decimal) -> None:
    member.balance = to_money(member.balance or 0) + amount
    member.total_contributions = to_money(member.total_contributions or 0) + amount

    db.add(Transaction(
        member_id=member.id,
        type=TransactionType.CONTRIBUTION,
        amount=amount,
        status=TransactionStatus.COMPLETED,
        reference=generate_reference(),
        description=f"Monthly savings payroll posting ({cycle.period})."
    ))
    line.actual_amount = amount


def _post_loan_line(
    db: Session,
    cycle: PayrollCycle,
    line: PayrollLine,
    member: Member,
    amount: Decimal,
    now: datetime
) -> tuple:
    """Apply a loan repayment line; returns the amount applied and whether the loan was completed."""
    if line.loan_id is None:
        raise PostingError(f"Loan repayment line {line.id} has no loan")

    loan = db.query(Loan).filter(Loan.id == line.loan_id).with_for_update().populate_existing().first()
    if not loan:
        raise PostingError(f"Loan {line.loan_id} for payroll line {line.id} not found")

    outstanding = to_money(loan.balance or 0)
    repay = max(ZERO, min(amount, outstanding))

    completed = False
    if repay > 0:
        next_balance = max(ZERO, outstanding - repay)
        loan.balance = next_balance
        if next_balance <= 0:
            loan.status = LoanStatus.COMPLETED
            completed = True

        db.add(Repayment(loan_id=loan.id, amount=repay, date=now))

        # Cached aggregate: read-then-write under the member row lock
        member.loan_balance = max(ZERO, to_money(member.loan_balance or 0) - repay)

        db.add(Transaction(
            member_id=member.id,
            type=TransactionType.LOAN_REPAYMENT,
            amount=repay,
            status=TransactionStatus.COMPLETED,
            reference=generate_reference(),
            description=f"Monthly loan payroll repayment posting ({cycle.period})."
        ))

    if repay < amount:
        note = f"Clamped from {amount:,.2f} to outstanding loan balance ({repay:,.2f})."
        line.reason = f"{line.reason} {note}" if line.reason else note

    line.actual_amount = repay
    return repay, completed


def post_cycle(
    db: Session,
    cycle_id: UUID,
    posted_by: str,
    now: datetime = None
) -> Dict:
    """
    Post every PENDING line of a finance-confirmed cycle to the member and loan ledgers.

    Runs as a single transaction with the cycle row locked: either all line
    effects and the POSTED transition are committed, or nothing is. Lines
    already POSTED or EXCLUDED are not touched.
    """
    now = now or datetime.now()

    cycle = _lock_cycle(db, cycle_id)
    if cycle.status != PayrollCycleStatus.FINANCE_CONFIRMED:
        db.rollback()
        raise CycleNotConfirmed(cycle.id, cycle.status.value)

    summary = {
        "cycle_id": cycle.id,
        "period": cycle.period,
        "lines_posted": 0,
        "lines_excluded": 0,
        "savings_total": ZERO,
        "repayments_total": ZERO,
        "loans_completed": 0,
    }

    try:
        pending_lines = db.query(PayrollLine).filter(
            PayrollLine.cycle_id == cycle.id,
            PayrollLine.status == PayrollLineStatus.PENDING
        ).order_by(PayrollLine.created_at, PayrollLine.id).all()

        for line in pending_lines:
            amount = line_amount(line)
            if amount <= 0:
                line.status = PayrollLineStatus.EXCLUDED
                summary["lines_excluded"] += 1
                db.flush()
                continue

            member = db.query(Member).filter(
                Member.id == line.member_id
            ).with_for_update().populate_existing().first()
            if not member:
                raise PostingError(f"Member {line.member_id} for payroll line {line.id} not found")

            if line.line_type == PayrollLineType.SAVINGS:
                _post_savings_line(db, cycle, line, member, amount)
                summary["savings_total"] += amount
            elif line.line_type == PayrollLineType.LOAN_REPAYMENT:
                repay, completed = _post_loan_line(db, cycle, line, member, amount, now)
                summary["repayments_total"] += repay
                if completed:
                    summary["loans_completed"] += 1
            else:
                raise PostingError(f"Unknown payroll line type {line.line_type}")

            line.status = PayrollLineStatus.POSTED
            line.posted_at = now
            summary["lines_posted"] += 1
            db.flush()

        cycle.status = PayrollCycleStatus.POSTED
        cycle.posted_by = posted_by
        cycle.posted_at = now
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Posting payroll cycle %s failed; rolled back", summary["period"])
        raise

    logger.info(
        "Posted payroll cycle %s: %d line(s) posted, %d excluded, savings=%s, repayments=%s",
        summary["period"],
        summary["lines_posted"],
        summary["lines_excluded"],
        summary["savings_total"],
        summary["repayments_total"],
    )
    return summary


# ---------------------------------------------------------------------------
# Month-end automation
# ---------------------------------------------------------------------------

def auto_post_if_due(db: Session, now: datetime = None) -> Dict:
    """
    Run draft -> confirm -> post for the current period once month-end is due.

    Safe to call repeatedly: a POSTED cycle is reported and left alone, and
    the row lock plus status checks in confirm/post stop a concurrent run
    from posting twice.
    """
    now = now or datetime.now()
    period = period_of(now)
    result = {"ran": False, "reason": "before_due_day", "period": period, "cycle_id": None, "summary": None}

    if not is_month_end_due(now):
        return result

    cycle = get_cycle_by_period(db, period)
    if cycle is None:
        try:
            cycle = generate_draft(db, period, created_by=SYSTEM_ACTOR)
        except CycleAlreadyExists:
            cycle = get_cycle_by_period(db, period)
    result["cycle_id"] = cycle.id

    if cycle.status == PayrollCycleStatus.POSTED:
        result["reason"] = "already_posted"
        return result

    if cycle.status == PayrollCycleStatus.DRAFT:
        try:
            confirm_finance(db, cycle.id, SYSTEM_ACTOR, now)
        except CycleNotEditable as exc:
            logger.info("Payroll cycle %s already moved to %s; skipping auto-confirm", period, exc.status)

    try:
        result["summary"] = post_cycle(db, cycle.id, SYSTEM_ACTOR, now)
    except CycleNotConfirmed as exc:
        result["reason"] = "already_posted" if exc.status == PayrollCycleStatus.POSTED.value else "not_finance_confirmed"
        return result

    result["ran"] = True
    result["reason"] = "posted"
    return result
