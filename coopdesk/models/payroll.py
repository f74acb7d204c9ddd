from sqlalchemy import Column, String, ForeignKey, DateTime, Numeric, Enum as SQLEnum, Text, Uuid, text
from sqlalchemy.orm import relationship
import uuid
from coopdesk.db.base import Base
import enum


class PayrollCycleStatus(str, enum.Enum):
    """Payroll cycle status. Transitions are forward-only."""
    DRAFT = "draft"
    FINANCE_CONFIRMED = "finance_confirmed"
    POSTED = "posted"


class PayrollLineType(str, enum.Enum):
    """Payroll deduction type."""
    SAVINGS = "savings"
    LOAN_REPAYMENT = "loan_repayment"


class PayrollLineStatus(str, enum.Enum):
    """Payroll line status."""
    PENDING = "pending"
    EXCLUDED = "excluded"
    POSTED = "posted"


class PayrollCycle(Base):
    """Monthly payroll deduction cycle."""
    __tablename__ = "payroll_cycle"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    period = Column(String(7), nullable=False, unique=True, index=True)  # e.g., "2024-03"
    status = Column(SQLEnum(PayrollCycleStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=PayrollCycleStatus.DRAFT, nullable=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    finance_confirmed_by = Column(String(255), nullable=True)
    finance_confirmed_at = Column(DateTime, nullable=True)
    posted_by = Column(String(255), nullable=True)
    posted_at = Column(DateTime, nullable=True)

    # Relationships
    lines = relationship("PayrollLine", back_populates="cycle", order_by="PayrollLine.line_type", cascade="all, delete-orphan")


class PayrollLine(Base):
    """One member's deduction of one type within a cycle."""
    __tablename__ = "payroll_line"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    cycle_id = Column(Uuid(as_uuid=True), ForeignKey("payroll_cycle.id"), nullable=False, index=True)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    loan_id = Column(Uuid(as_uuid=True), ForeignKey("loan.id"), nullable=True, index=True)  # Loan repayment lines only
    line_type = Column(SQLEnum(PayrollLineType, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    expected_amount = Column(Numeric(15, 2), nullable=False)
    actual_amount = Column(Numeric(15, 2), nullable=True)
    status = Column(SQLEnum(PayrollLineStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=PayrollLineStatus.PENDING, nullable=False)
    reason = Column(Text, nullable=True)
    posted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    cycle = relationship("PayrollCycle", back_populates="lines")
    member = relationship("Member", back_populates="payroll_lines")
    loan = relationship("Loan")
