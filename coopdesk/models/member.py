from sqlalchemy import Column, String, Boolean, DateTime, Numeric, Enum as SQLEnum, Uuid, text
from sqlalchemy.orm import relationship
import uuid
from coopdesk.db.base import Base
import enum
from decimal import Decimal


class MemberRole(str, enum.Enum):
    """Account role."""
    ADMIN = "admin"
    MEMBER = "member"


class MemberStatus(str, enum.Enum):
    """Member status enum."""
    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"


class Member(Base):
    """Cooperative member with savings and loan ledger fields."""
    __tablename__ = "member"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    staff_id = Column(String(50), nullable=True, unique=True, index=True)
    phone = Column(String(20), nullable=True)
    department = Column(String(100), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(MemberRole, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=MemberRole.MEMBER, nullable=False)
    status = Column(SQLEnum(MemberStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=MemberStatus.PENDING, nullable=False)
    monthly_contribution = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))  # Planned monthly savings
    voucher_enabled = Column(Boolean, nullable=False, default=True)  # Included in payroll deductions
    balance = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    total_contributions = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    loan_balance = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))  # Mirror of outstanding approved loans
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))  # Registration timestamp
    closed_at = Column(DateTime, nullable=True)

    # Relationships
    loans = relationship("Loan", back_populates="member")
    payments = relationship("Payment", back_populates="member")
    transactions = relationship("Transaction", back_populates="member")
    payroll_lines = relationship("PayrollLine", back_populates="member")
    vouchers = relationship("Voucher", back_populates="member")
