from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class PayrollDraftCreate(BaseModel):
    """Schema for requesting a draft payroll cycle."""
    period: str = Field(..., description="Calendar month, YYYY-MM")


class PayrollLineUpdate(BaseModel):
    """Schema for editing a draft payroll line."""
    actual_amount: Decimal = Field(..., ge=0, description="Amount to deduct; 0 excludes the line at posting")
    status: str = Field("pending", description="Line status: pending or excluded")
    reason: Optional[str] = Field(None, description="Free-text note shown on the month-end screen")


class PayrollLineResponse(BaseModel):
    """Schema for payroll line response."""
    id: UUID
    cycle_id: UUID
    member_id: UUID
    member_name: Optional[str] = None
    staff_id: Optional[str] = None
    loan_id: Optional[UUID] = None
    line_type: str
    expected_amount: Decimal
    actual_amount: Optional[Decimal] = None
    status: str
    reason: Optional[str] = None
    posted_at: Optional[datetime] = None


class PayrollCycleResponse(BaseModel):
    """Schema for payroll cycle response."""
    id: UUID
    period: str
    status: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    finance_confirmed_by: Optional[str] = None
    finance_confirmed_at: Optional[datetime] = None
    posted_by: Optional[str] = None
    posted_at: Optional[datetime] = None


class PayrollCycleTotals(BaseModel):
    line_count: int
    pending_lines: int
    pending_amount: Decimal
    excluded_lines: int
    posted_lines: int
    posted_amount: Decimal
    expected_savings: Decimal
    expected_loan_repayments: Decimal


class PayrollCycleDetail(PayrollCycleResponse):
    """Cycle with its lines and totals."""
    totals: PayrollCycleTotals
    lines: List[PayrollLineResponse] = Field(default_factory=list)


class PostingSummary(BaseModel):
    cycle_id: UUID
    period: str
    lines_posted: int
    lines_excluded: int
    savings_total: Decimal
    repayments_total: Decimal
    loans_completed: int


class AutoPostResponse(BaseModel):
    ran: bool
    reason: str
    period: Optional[str] = None
    cycle_id: Optional[UUID] = None
    summary: Optional[PostingSummary] = None
    run_at: datetime


class LoanBalanceDrift(BaseModel):
    member_id: UUID
    member_name: Optional[str] = None
    cached_loan_balance: Decimal
    outstanding_loan_balance: Decimal
    difference: Decimal
