"""
Create the back-office admin account.
Usage: python scripts/create_admin.py --email admin@coopbank.org --password ...
"""
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from coopdesk.db.base import SessionLocal
from coopdesk.core.security import get_password_hash
from coopdesk.models.member import Member, MemberRole, MemberStatus


def create_admin(email: str = "admin@coopbank.org", password: str = "admin123", name: str = "Admin"):
    """Create an ACTIVE admin account. Admins never appear on vouchers or payroll."""
    db = SessionLocal()
    try:
        existing_user = db.query(Member).filter(Member.email == email).first()
        if existing_user:
            print(f"Account with email {email} already exists!")
            return

        admin = Member(
            name=name,
            email=email,
            password_hash=get_password_hash(password),
            role=MemberRole.ADMIN,
            status=MemberStatus.ACTIVE,
            voucher_enabled=False
        )
        db.add(admin)
        db.commit()
        print("✅ Admin account created successfully!")
        print(f"   Email: {email}")
        print(f"\n⚠️  Please change the password after first login!")

    except Exception as e:
        db.rollback()
        print(f"❌ Error creating admin account: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Create the back-office admin account")
    parser.add_argument("--email", default="admin@coopbank.org", help="Admin email")
    parser.add_argument("--password", default="admin123", help="Admin password")
    parser.add_argument("--name", default="Admin", help="Display name")

    args = parser.parse_args()

    create_admin(email=args.email, password=args.password, name=args.name)
