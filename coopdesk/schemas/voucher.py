from pydantic import BaseModel
from typing import List
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class VoucherRow(BaseModel):
    serial: int
    member_id: UUID
    staff_id: str
    name: str
    monthly_savings: Decimal
    member_fee: Decimal
    thrift_savings: Decimal
    member_type: str  # NEW or OLD, drives the fee
    first_voucher_period: str
    registered_this_period: bool


class VoucherTotals(BaseModel):
    monthly_savings: Decimal
    fees: Decimal
    thrift_savings: Decimal
    new_members: int
    old_members: int


class VoucherDataset(BaseModel):
    period: str
    start: datetime
    end: datetime
    rows: List[VoucherRow]
    totals: VoucherTotals
