"""Voucher dataset, CSV export and per-member voucher lifecycle."""

import csv
import io
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from coopdesk.core.config import settings
from coopdesk.core.exceptions import ValidationError
from coopdesk.models.member import Member, MemberRole, MemberStatus
from coopdesk.models.voucher import Voucher, VoucherStatus
from coopdesk.services.loan import to_money
from coopdesk.services.period import (
    MEMBER_TYPE_NEW,
    first_voucher_period,
    is_new_member,
    member_fee,
    member_type_for_period,
    month_range,
    parse_period,
    resolve_period,
)

logger = logging.getLogger(__name__)

CSV_HEADER = ["S/N", "Staff ID", "Name", "Thrift Savings"]


def build_voucher_dataset(db: Session, period: Optional[str] = None, now: Optional[datetime] = None) -> Dict:
    """
    Monthly deduction voucher rows for a period.

    Falls back to the current period when ``period`` is missing or malformed.
    Members appear once their first voucher period has been reached; the fee
    is the new-member fee in that first period and the recurring fee after.
    """
    period = resolve_period(period, now)
    start, end = month_range(period)

    members = db.query(Member).filter(
        Member.role == MemberRole.MEMBER,
        Member.status == MemberStatus.ACTIVE,
        Member.voucher_enabled.is_(True),
        Member.monthly_contribution > 0,
        Member.created_at < end
    ).order_by(Member.staff_id, Member.name).all()

    rows: List[Dict] = []
    for member in members:
        first_period = first_voucher_period(member.created_at)
        if first_period > period:
            continue

        member_type = member_type_for_period(member.created_at, period)
        fee = Decimal(member_fee(member_type))
        monthly_savings = to_money(member.monthly_contribution or 0)
        rows.append({
            "serial": len(rows) + 1,
            "member_id": member.id,
            "staff_id": member.staff_id or "N/A",
            "name": member.name or "Unnamed Member",
            "monthly_savings": monthly_savings,
            "member_fee": to_money(fee),
            "thrift_savings": monthly_savings + to_money(fee),
            "member_type": member_type,
            "first_voucher_period": first_period,
            "registered_this_period": is_new_member(member.created_at, period),
        })

    totals = {
        "monthly_savings": Decimal("0.00"),
        "fees": Decimal("0.00"),
        "thrift_savings": Decimal("0.00"),
        "new_members": 0,
        "old_members": 0,
    }
    for row in rows:
        totals["monthly_savings"] += row["monthly_savings"]
        totals["fees"] += row["member_fee"]
        totals["thrift_savings"] += row["thrift_savings"]
        if row["member_type"] == MEMBER_TYPE_NEW:
            totals["new_members"] += 1
        else:
            totals["old_members"] += 1

    return {"period": period, "start": start, "end": end, "rows": rows, "totals": totals}


def build_voucher_csv(dataset: Dict) -> str:
    """Render the dataset in the payroll office's spreadsheet layout."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["", "", settings.VOUCHER_TITLE, ""])
    writer.writerow(CSV_HEADER)
    for row in dataset["rows"]:
        writer.writerow([row["serial"], row["staff_id"], row["name"], f"{row['thrift_savings']:.2f}"])
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# Voucher lifecycle
# ---------------------------------------------------------------------------

def create_member_voucher(
    db: Session,
    member: Member,
    notes: str = None,
    registered_at: datetime = None
) -> Voucher:
    """Add a GENERATED voucher for a newly registered member (not committed)."""
    start_period = first_voucher_period(registered_at or member.created_at or datetime.now())
    year, month = parse_period(start_period)

    voucher = Voucher(
        member_id=member.id,
        full_name=member.name or "Unnamed Member",
        staff_id=member.staff_id,
        department=member.department or "N/A",
        monthly_deduction=to_money(member.monthly_contribution or 0),
        effective_start_date=date(year, month, 1),
        status=VoucherStatus.GENERATED,
        notes=notes
    )
    db.add(voucher)
    return voucher


def mark_voucher_sent(db: Session, voucher_id: UUID) -> Voucher:
    """Record that a voucher was sent to the payroll office."""
    voucher = db.query(Voucher).filter(Voucher.id == voucher_id).first()
    if not voucher:
        raise ValueError("Voucher not found")

    if voucher.status == VoucherStatus.REMOVED:
        raise ValidationError("Removed vouchers cannot be sent")
    if voucher.status == VoucherStatus.SENT:
        return voucher  # Already sent

    voucher.status = VoucherStatus.SENT
    voucher.sent_at = datetime.now()
    db.commit()
    db.refresh(voucher)
    return voucher


def remove_member_vouchers(db: Session, member_id: UUID) -> int:
    """Mark every live voucher for a member as REMOVED (not committed). Returns the count."""
    vouchers = db.query(Voucher).filter(
        Voucher.member_id == member_id,
        Voucher.status.in_([VoucherStatus.GENERATED, VoucherStatus.SENT])
    ).all()

    now = datetime.now()
    for voucher in vouchers:
        voucher.status = VoucherStatus.REMOVED
        voucher.removed_at = now

    if vouchers:
        logger.info("Removed %d voucher(s) for member %s", len(vouchers), member_id)
    return len(vouchers)
