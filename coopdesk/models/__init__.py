from coopdesk.db.base import Base

# Import all models so Alembic can detect them
from coopdesk.models.member import Member, MemberRole, MemberStatus
from coopdesk.models.transaction import (
    Loan,
    LoanStatus,
    Repayment,
    Payment,
    PaymentType,
    PaymentStatus,
    Transaction,
    TransactionType,
    TransactionStatus,
)
from coopdesk.models.payroll import (
    PayrollCycle,
    PayrollCycleStatus,
    PayrollLine,
    PayrollLineType,
    PayrollLineStatus,
)
from coopdesk.models.voucher import Voucher, VoucherStatus

__all__ = [
    "Base",
    "Member",
    "MemberRole",
    "MemberStatus",
    "Loan",
    "LoanStatus",
    "Repayment",
    "Payment",
    "PaymentType",
    "PaymentStatus",
    "Transaction",
    "TransactionType",
    "TransactionStatus",
    "PayrollCycle",
    "PayrollCycleStatus",
    "PayrollLine",
    "PayrollLineType",
    "PayrollLineStatus",
    "Voucher",
    "VoucherStatus",
]
