from sqlalchemy import Column, String, ForeignKey, DateTime, Numeric, Integer, Enum as SQLEnum, Text, Uuid, text
from sqlalchemy.orm import relationship
import uuid
from coopdesk.db.base import Base
import enum
from decimal import Decimal


class LoanStatus(str, enum.Enum):
    """Loan status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class PaymentType(str, enum.Enum):
    """Payment type."""
    CONTRIBUTION = "contribution"
    LOAN_REPAYMENT = "loan_repayment"
    COMMODITY = "commodity"


class PaymentStatus(str, enum.Enum):
    """Payment status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class TransactionType(str, enum.Enum):
    """Ledger transaction type."""
    CONTRIBUTION = "contribution"
    LOAN_REPAYMENT = "loan_repayment"
    LOAN_DISBURSEMENT = "loan_disbursement"
    WITHDRAWAL = "withdrawal"


class TransactionStatus(str, enum.Enum):
    """Ledger transaction status."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Loan(Base):
    """Member loan."""
    __tablename__ = "loan"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)  # Principal
    interest_rate = Column(Numeric(5, 2), nullable=False)  # Percent, flat over the term
    duration_months = Column(Integer, nullable=False)
    total_repayable = Column(Numeric(15, 2), nullable=False)
    monthly_payment = Column(Numeric(15, 2), nullable=False)
    balance = Column(Numeric(15, 2), nullable=False)
    status = Column(SQLEnum(LoanStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=LoanStatus.PENDING, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    member = relationship("Member", back_populates="loans")
    repayments = relationship("Repayment", back_populates="loan")


class Repayment(Base):
    """Loan repayment applied to a loan balance."""
    __tablename__ = "repayment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    loan_id = Column(Uuid(as_uuid=True), ForeignKey("loan.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    date = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    loan = relationship("Loan", back_populates="repayments")


class Payment(Base):
    """Payment made directly by a member outside payroll."""
    __tablename__ = "payment"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    type = Column(SQLEnum(PaymentType, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    status = Column(SQLEnum(PaymentStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=PaymentStatus.PENDING, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    date = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"), index=True)
    reference = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    # Relationships
    member = relationship("Member", back_populates="payments")


class Transaction(Base):
    """Append-only member ledger transaction."""
    __tablename__ = "ledger_transaction"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    type = Column(SQLEnum(TransactionType, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    status = Column(SQLEnum(TransactionStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=TransactionStatus.PENDING, nullable=False)
    reference = Column(String(50), nullable=False, unique=True, index=True)
    description = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    member = relationship("Member", back_populates="transactions")
