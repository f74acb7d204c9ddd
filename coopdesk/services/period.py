"""Calendar-period helpers for payroll and voucher classification.

Periods are ``YYYY-MM`` strings. All "this month" filters use the half-open
range returned by :func:`month_range`. Timestamps are used as given; no
timezone conversion happens here.
"""
import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from coopdesk.core.config import settings
from coopdesk.core.exceptions import InvalidPeriod

PERIOD_PATTERN = re.compile(r"^\d{4}-\d{2}$")

MEMBER_TYPE_NEW = "NEW"
MEMBER_TYPE_OLD = "OLD"


def period_of(moment: date) -> str:
    """Calendar-month key for a date or datetime."""
    return f"{moment.year:04d}-{moment.month:02d}"


def parse_period(period: str) -> Tuple[int, int]:
    """Validate a period string and return ``(year, month)``."""
    value = (period or "").strip() if isinstance(period, str) else ""
    if not PERIOD_PATTERN.match(value):
        raise InvalidPeriod(period)
    year, month = (int(part) for part in value.split("-"))
    if not 1 <= month <= 12 or year < 1:
        raise InvalidPeriod(period)
    return year, month


def next_period(period: str) -> str:
    year, month = parse_period(period)
    if month == 12:
        return f"{year + 1:04d}-01"
    return f"{year:04d}-{month + 1:02d}"


def month_range(period: str) -> Tuple[datetime, datetime]:
    """Return ``[start, end)`` for the month: first instant and first instant of the next month."""
    year, month = parse_period(period)
    next_year, next_month = parse_period(next_period(period))
    return datetime(year, month, 1), datetime(next_year, next_month, 1)


def resolve_period(period: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """Return ``period`` if valid, otherwise the period containing ``now``."""
    if period:
        try:
            parse_period(period)
            return period.strip()
        except InvalidPeriod:
            pass
    return period_of(now or datetime.now())


def first_voucher_period(registered_at: date, cutoff_day: Optional[int] = None) -> str:
    """First payroll period that deducts for a member.

    Registrations on or before the cutoff day are deducted in the same month;
    later registrations start the following month.
    """
    cutoff = settings.VOUCHER_CUTOFF_DAY if cutoff_day is None else cutoff_day
    period = period_of(registered_at)
    if registered_at.day <= cutoff:
        return period
    return next_period(period)


def is_new_member(registered_at: date, target_period: str) -> bool:
    """True when the member registered during the target month."""
    parse_period(target_period)
    return period_of(registered_at) == target_period


def member_type_for_period(registered_at: date, target_period: str) -> str:
    """NEW in the member's first voucher period, OLD afterwards.

    This is the rule used for fees; ``is_new_member`` is the raw
    registration-month check and is only reported for display.
    """
    parse_period(target_period)
    if first_voucher_period(registered_at) == target_period:
        return MEMBER_TYPE_NEW
    return MEMBER_TYPE_OLD


def member_fee(member_type: str) -> int:
    if member_type == MEMBER_TYPE_NEW:
        return settings.NEW_MEMBER_FEE
    return settings.OLD_MEMBER_FEE


def is_month_end_due(now: datetime, due_day: Optional[int] = None) -> bool:
    """Month-end posting is due from ``due_day`` onwards, or on the last day of shorter months."""
    threshold = settings.MONTH_END_DUE_DAY if due_day is None else due_day
    tomorrow = now + timedelta(days=1)
    return now.day >= threshold or tomorrow.month != now.month
