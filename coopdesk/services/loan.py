import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, List
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from coopdesk.core.config import settings
from coopdesk.core.exceptions import ValidationError
from coopdesk.models.member import Member, MemberRole
from coopdesk.models.transaction import Loan, LoanStatus

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a number to a 2dp Decimal."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"Amount must be a number, got {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Amount must be a finite number, got {value}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_loan_details(
    principal,
    duration_months: int,
    interest_rate_percent=None
) -> Dict[str, Decimal]:
    """
    Flat-interest loan figures.

    total_repayable = principal * (1 + rate), spread evenly over the term.
    """
    if duration_months is None or int(duration_months) <= 0:
        raise ValidationError("Loan duration must be at least one month")
    rate = Decimal(str(settings.LOAN_INTEREST_RATE_PERCENT if interest_rate_percent is None else interest_rate_percent))
    principal = to_money(principal)
    if principal <= 0:
        raise ValidationError("Loan principal must be positive")

    interest = to_money(principal * rate / Decimal("100"))
    total_repayable = principal + interest
    monthly_payment = to_money(total_repayable / Decimal(int(duration_months)))
    return {
        "principal": principal,
        "interest": interest,
        "total_repayable": total_repayable,
        "monthly_payment": monthly_payment,
        "duration_months": int(duration_months),
        "interest_rate": rate,
    }


def outstanding_loan_balance(db: Session, member_id: UUID) -> Decimal:
    """Sum of balances on the member's approved loans that still owe money."""
    total = db.query(func.sum(Loan.balance)).filter(
        Loan.member_id == member_id,
        Loan.status == LoanStatus.APPROVED,
        Loan.balance > 0
    ).scalar()
    return to_money(total or 0)


def find_loan_balance_drift(db: Session) -> List[dict]:
    """Members whose cached loan_balance disagrees with their approved loans."""
    totals = dict(
        db.query(Loan.member_id, func.sum(Loan.balance)).filter(
            Loan.status == LoanStatus.APPROVED,
            Loan.balance > 0
        ).group_by(Loan.member_id).all()
    )

    drift = []
    members = db.query(Member).filter(Member.role == MemberRole.MEMBER).all()
    for member in members:
        expected = to_money(totals.get(member.id) or 0)
        cached = to_money(member.loan_balance or 0)
        if expected != cached:
            drift.append({
                "member_id": member.id,
                "member_name": member.name,
                "cached_loan_balance": cached,
                "outstanding_loan_balance": expected,
                "difference": cached - expected,
            })
    return drift


def resync_loan_balances(db: Session) -> int:
    """Rewrite cached loan balances from source loans. Returns the number of members fixed."""
    drift = find_loan_balance_drift(db)
    if not drift:
        return 0

    for row in drift:
        member = db.query(Member).filter(Member.id == row["member_id"]).first()
        member.loan_balance = row["outstanding_loan_balance"]

    db.commit()
    logger.warning("Resynced cached loan balance for %d member(s)", len(drift))
    return len(drift)
