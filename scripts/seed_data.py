"""
Seed demo data: members with vouchers, one approved loan and a direct repayment.
Usage: python scripts/seed_data.py
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from coopdesk.db.base import Base, SessionLocal, engine
from coopdesk.models.member import Member, MemberStatus
from coopdesk.models.transaction import Loan, LoanStatus, Payment, PaymentStatus, PaymentType
from coopdesk.services.loan import calculate_loan_details
from coopdesk.services.member import register_member
from decimal import Decimal
from datetime import datetime, timedelta


DEMO_MEMBERS = [
    {"name": "Ada Obi", "email": "ada@coopbank.org", "staff_id": "ST001", "department": "Finance", "monthly_contribution": Decimal("5000.00")},
    {"name": "Bola Ade", "email": "bola@coopbank.org", "staff_id": "ST002", "department": "Works", "monthly_contribution": Decimal("3000.00")},
    {"name": "Chi Eze", "email": "chi@coopbank.org", "staff_id": "ST003", "department": "Registry", "monthly_contribution": Decimal("2500.00")},
]


def seed_members(db):
    """Register demo members as ACTIVE, two months back so they are OLD members."""
    print("Seeding members...")
    registered_at = datetime.now().replace(day=1) - timedelta(days=40)
    created = []
    for data in DEMO_MEMBERS:
        existing = db.query(Member).filter(Member.email == data["email"]).first()
        if existing:
            created.append(existing)
            continue
        created.append(register_member(
            db,
            password="member123",
            status=MemberStatus.ACTIVE,
            registered_at=registered_at,
            **data
        ))
    print(f"{len(created)} members seeded")
    return created


def seed_loan(db, member):
    """Give one member an approved loan and a direct repayment this month."""
    print("Seeding loan...")
    if db.query(Loan).filter(Loan.member_id == member.id).first():
        print("Loan already present")
        return

    details = calculate_loan_details(Decimal("60000.00"), 12)
    db.add(Loan(
        member_id=member.id,
        amount=details["principal"],
        interest_rate=details["interest_rate"],
        duration_months=details["duration_months"],
        total_repayable=details["total_repayable"],
        monthly_payment=details["monthly_payment"],
        balance=details["total_repayable"],
        status=LoanStatus.APPROVED
    ))
    member.loan_balance = details["total_repayable"]
    db.add(Payment(
        member_id=member.id,
        type=PaymentType.LOAN_REPAYMENT,
        status=PaymentStatus.APPROVED,
        amount=Decimal("1000.00"),
        date=datetime.now(),
        reference="DEMO-DIRECT-1"
    ))
    db.commit()
    print("Loan seeded")


def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        members = seed_members(db)
        seed_loan(db, members[0])
        print("\n✅ Seed data complete")
    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding data: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
