from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import Session
from coopdesk.core.security import get_password_hash
from coopdesk.models.member import Member, MemberRole, MemberStatus
from coopdesk.services.loan import to_money
from coopdesk.services.voucher import create_member_voucher, remove_member_vouchers
from uuid import UUID


def register_member(
    db: Session,
    name: str,
    email: str,
    password: str,
    monthly_contribution,
    staff_id: str = None,
    phone: str = None,
    department: str = None,
    status: MemberStatus = MemberStatus.PENDING,
    registered_at: datetime = None,
    notes: str = None
) -> Member:
    """
    Register a member and generate their payroll deduction voucher.

    Member and voucher are committed together.
    """
    if db.query(Member).filter(Member.email == email).first():
        raise ValueError(f"A member with email {email} already exists")
    if staff_id and db.query(Member).filter(Member.staff_id == staff_id).first():
        raise ValueError(f"A member with staff ID {staff_id} already exists")

    contribution = to_money(monthly_contribution or 0)
    if contribution < 0:
        raise ValueError("Monthly contribution cannot be negative")

    registered_at = registered_at or datetime.now()
    member = Member(
        name=name,
        email=email,
        staff_id=staff_id,
        phone=phone,
        department=department,
        password_hash=get_password_hash(password),
        role=MemberRole.MEMBER,
        status=status,
        monthly_contribution=contribution,
        voucher_enabled=True,
        balance=Decimal("0.00"),
        total_contributions=Decimal("0.00"),
        loan_balance=Decimal("0.00"),
        created_at=registered_at
    )
    db.add(member)
    db.flush()

    create_member_voucher(db, member, notes=notes, registered_at=registered_at)

    db.commit()
    db.refresh(member)
    return member


def activate_member(
    db: Session,
    member_id: UUID
) -> Member:
    """Activate a pending member."""
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise ValueError("Member not found")

    if member.status == MemberStatus.ACTIVE:
        return member  # Already active
    if member.status == MemberStatus.CLOSED:
        raise ValueError("Closed members cannot be reactivated")

    member.status = MemberStatus.ACTIVE
    db.commit()
    db.refresh(member)
    return member


def close_member(
    db: Session,
    member_id: UUID
) -> Member:
    """Close a member account, stop payroll deductions and remove their vouchers."""
    member = db.query(Member).filter(Member.id == member_id).first()
    if not member:
        raise ValueError("Member not found")

    if member.status == MemberStatus.CLOSED:
        return member  # Already closed

    member.status = MemberStatus.CLOSED
    member.voucher_enabled = False
    member.closed_at = datetime.now()
    remove_member_vouchers(db, member.id)

    db.commit()
    db.refresh(member)
    return member
