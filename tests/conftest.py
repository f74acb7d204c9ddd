import os

# Settings are read at import time; point them at a throwaway database first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["MONTH_END_CRON_SECRET"] = "cron-secret"

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coopdesk.core.dependencies import require_admin
from coopdesk.db.base import Base, get_db
from coopdesk.main import app
from coopdesk.models import (
    Loan,
    LoanStatus,
    Member,
    MemberRole,
    MemberStatus,
    Payment,
    PaymentStatus,
    PaymentType,
)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def audit_dir(tmp_path, monkeypatch):
    """Keep audit files out of the project tree."""
    monkeypatch.setattr("coopdesk.core.audit.LOGS_DIR", tmp_path)
    return tmp_path


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db):
    """Sessions bound to the test database, for code that opens its own."""
    return TestingSessionLocal


@pytest.fixture
def make_member(db):
    counter = {"n": 0}

    def _make(
        name=None,
        monthly_contribution="1000.00",
        created_at=datetime(2024, 1, 5, 9, 0),
        staff_id=None,
        status=MemberStatus.ACTIVE,
        role=MemberRole.MEMBER,
        voucher_enabled=True,
        balance="0.00",
        loan_balance="0.00",
        password_hash="not-a-real-hash",
    ):
        counter["n"] += 1
        n = counter["n"]
        member = Member(
            name=name or f"Member {n}",
            email=f"member{n}@coopbank.org",
            staff_id=staff_id if staff_id is not None else f"ST{n:03d}",
            password_hash=password_hash,
            role=role,
            status=status,
            monthly_contribution=Decimal(monthly_contribution),
            voucher_enabled=voucher_enabled,
            balance=Decimal(balance),
            total_contributions=Decimal(balance),
            loan_balance=Decimal(loan_balance),
            created_at=created_at,
        )
        db.add(member)
        db.commit()
        db.refresh(member)
        return member

    return _make


@pytest.fixture
def make_loan(db):
    def _make(member, balance, monthly_payment, status=LoanStatus.APPROVED, created_at=datetime(2024, 1, 10)):
        loan = Loan(
            member_id=member.id,
            amount=Decimal(balance),
            interest_rate=Decimal("5"),
            duration_months=12,
            total_repayable=Decimal(balance),
            monthly_payment=Decimal(monthly_payment),
            balance=Decimal(balance),
            status=status,
            created_at=created_at,
        )
        db.add(loan)
        if status == LoanStatus.APPROVED:
            member.loan_balance = Decimal(member.loan_balance or 0) + Decimal(balance)
        db.commit()
        db.refresh(loan)
        return loan

    return _make


@pytest.fixture
def make_payment(db):
    def _make(member, amount, date, type=PaymentType.LOAN_REPAYMENT, status=PaymentStatus.APPROVED):
        payment = Payment(
            member_id=member.id,
            type=type,
            status=status,
            amount=Decimal(amount),
            date=date,
        )
        db.add(payment)
        db.commit()
        return payment

    return _make


@pytest.fixture
def admin(make_member):
    return make_member(
        name="Back Office",
        role=MemberRole.ADMIN,
        monthly_contribution="0.00",
        voucher_enabled=False,
        staff_id="ADMIN",
    )


@pytest.fixture
def client(db, admin):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[require_admin] = lambda: admin
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
