from sqlalchemy import Column, String, ForeignKey, DateTime, Date, Numeric, Enum as SQLEnum, Text, Uuid, text
from sqlalchemy.orm import relationship
import uuid
from coopdesk.db.base import Base
import enum


class VoucherStatus(str, enum.Enum):
    """Voucher status."""
    GENERATED = "generated"
    SENT = "sent"
    REMOVED = "removed"


class Voucher(Base):
    """Payroll deduction notice for a member."""
    __tablename__ = "voucher"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    member_id = Column(Uuid(as_uuid=True), ForeignKey("member.id"), nullable=False, index=True)
    full_name = Column(String(200), nullable=False)
    staff_id = Column(String(50), nullable=True)
    department = Column(String(100), nullable=True)
    monthly_deduction = Column(Numeric(15, 2), nullable=False)
    effective_start_date = Column(Date, nullable=False)  # First day of the first deduction month
    status = Column(SQLEnum(VoucherStatus, native_enum=False, values_callable=lambda obj: [e.value for e in obj]), default=VoucherStatus.GENERATED, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    sent_at = Column(DateTime, nullable=True)
    removed_at = Column(DateTime, nullable=True)

    # Relationships
    member = relationship("Member", back_populates="vouchers")
