import secrets
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from coopdesk.core.audit import write_audit_log
from coopdesk.core.config import settings
from coopdesk.core.dependencies import actor_name, require_admin
from coopdesk.core.exceptions import (
    CycleAlreadyExists,
    CycleNotConfirmed,
    CycleNotEditable,
    CycleNotFound,
    InvalidPeriod,
    LineNotFound,
    PayrollError,
    ValidationError,
)
from coopdesk.db.base import get_db
from coopdesk.models.member import Member
from coopdesk.models.payroll import PayrollCycle, PayrollLine
from coopdesk.schemas.payroll import (
    AutoPostResponse,
    LoanBalanceDrift,
    PayrollCycleDetail,
    PayrollCycleResponse,
    PayrollDraftCreate,
    PayrollLineResponse,
    PayrollLineUpdate,
    PostingSummary,
)
from coopdesk.services.loan import find_loan_balance_drift, resync_loan_balances
from coopdesk.services.payroll import (
    auto_post_if_due,
    confirm_finance,
    cycle_totals,
    edit_line,
    generate_draft,
    get_cycle,
    list_cycles,
    post_cycle,
)

router = APIRouter(prefix="/api/payroll", tags=["payroll"])

_ERROR_STATUS = {
    InvalidPeriod: status.HTTP_400_BAD_REQUEST,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    CycleNotFound: status.HTTP_404_NOT_FOUND,
    LineNotFound: status.HTTP_404_NOT_FOUND,
    CycleAlreadyExists: status.HTTP_409_CONFLICT,
    CycleNotEditable: status.HTTP_409_CONFLICT,
    CycleNotConfirmed: status.HTTP_409_CONFLICT,
}


def _http_error(exc: PayrollError) -> HTTPException:
    """Map a payroll error onto an HTTP response; anything unmapped is a 500."""
    code = _ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTPException(status_code=code, detail=str(exc))


def _line_response(line: PayrollLine) -> PayrollLineResponse:
    member = line.member
    return PayrollLineResponse(
        id=line.id,
        cycle_id=line.cycle_id,
        member_id=line.member_id,
        member_name=member.name if member else None,
        staff_id=member.staff_id if member else None,
        loan_id=line.loan_id,
        line_type=line.line_type.value,
        expected_amount=line.expected_amount,
        actual_amount=line.actual_amount,
        status=line.status.value,
        reason=line.reason,
        posted_at=line.posted_at
    )


def _cycle_response(cycle: PayrollCycle) -> PayrollCycleResponse:
    return PayrollCycleResponse(
        id=cycle.id,
        period=cycle.period,
        status=cycle.status.value,
        created_by=cycle.created_by,
        created_at=cycle.created_at,
        finance_confirmed_by=cycle.finance_confirmed_by,
        finance_confirmed_at=cycle.finance_confirmed_at,
        posted_by=cycle.posted_by,
        posted_at=cycle.posted_at
    )


def _cycle_detail(cycle: PayrollCycle) -> PayrollCycleDetail:
    return PayrollCycleDetail(
        **_cycle_response(cycle).model_dump(),
        totals=cycle_totals(cycle),
        lines=[_line_response(line) for line in cycle.lines]
    )


@router.post("/cycles", response_model=PayrollCycleDetail, status_code=status.HTTP_201_CREATED)
def create_draft_cycle(
    request: PayrollDraftCreate,
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Generate the draft payroll cycle for a month."""
    actor = actor_name(current_user)
    try:
        cycle = generate_draft(db, request.period, created_by=actor)
    except PayrollError as e:
        raise _http_error(e)

    write_audit_log(
        actor=actor,
        role=current_user.role.value,
        action="Generated payroll draft",
        period=cycle.period,
        details=f"lines={len(cycle.lines)}"
    )
    return _cycle_detail(cycle)


@router.get("/cycles", response_model=List[PayrollCycleResponse])
def get_recent_cycles(
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Most recent 12 payroll cycles, newest first."""
    return [_cycle_response(cycle) for cycle in list_cycles(db)]


@router.get("/cycles/{cycle_id}", response_model=PayrollCycleDetail)
def get_cycle_detail(
    cycle_id: UUID,
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Cycle with its lines and pending totals."""
    try:
        cycle = get_cycle(db, cycle_id)
    except PayrollError as e:
        raise _http_error(e)
    return _cycle_detail(cycle)


@router.patch("/lines/{line_id}", response_model=PayrollLineResponse)
def update_line(
    line_id: UUID,
    request: PayrollLineUpdate,
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Adjust a draft line's amount, status and reason."""
    try:
        line = edit_line(db, line_id, request.actual_amount, request.status, request.reason)
    except PayrollError as e:
        raise _http_error(e)

    write_audit_log(
        actor=actor_name(current_user),
        role=current_user.role.value,
        action="Edited payroll line",
        period=line.cycle.period,
        details=f"line={line.id} amount={line.actual_amount} status={line.status.value}"
    )
    return _line_response(line)


@router.post("/cycles/{cycle_id}/confirm", response_model=PayrollCycleResponse)
def confirm_cycle(
    cycle_id: UUID,
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Record finance confirmation that deductions were received."""
    actor = actor_name(current_user)
    try:
        cycle = confirm_finance(db, cycle_id, actor)
    except PayrollError as e:
        raise _http_error(e)

    write_audit_log(
        actor=actor,
        role=current_user.role.value,
        action="Confirmed payroll cycle",
        period=cycle.period
    )
    return _cycle_response(cycle)


@router.post("/cycles/{cycle_id}/post", response_model=PostingSummary)
def post_payroll_cycle(
    cycle_id: UUID,
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Post a finance-confirmed cycle to member and loan balances."""
    actor = actor_name(current_user)
    try:
        summary = post_cycle(db, cycle_id, actor)
    except PayrollError as e:
        raise _http_error(e)

    write_audit_log(
        actor=actor,
        role=current_user.role.value,
        action="Posted payroll cycle",
        period=summary["period"],
        details=(
            f"posted={summary['lines_posted']} excluded={summary['lines_excluded']} "
            f"savings={summary['savings_total']} repayments={summary['repayments_total']}"
        )
    )
    return summary


@router.post("/month-end", response_model=AutoPostResponse)
def run_month_end(
    x_cron_secret: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """External cron trigger for the month-end auto-post."""
    expected = settings.MONTH_END_CRON_SECRET
    if not expected:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Month-end cron trigger is disabled")
    if not x_cron_secret or not secrets.compare_digest(x_cron_secret, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid cron secret")

    run_at = datetime.now()
    try:
        result = auto_post_if_due(db, run_at)
    except PayrollError as e:
        raise _http_error(e)

    if result["ran"]:
        write_audit_log(
            actor="cron",
            role="system",
            action="Auto-posted payroll cycle",
            period=result["period"]
        )
    return {**result, "run_at": run_at}


@router.get("/loan-balance-drift", response_model=List[LoanBalanceDrift])
def get_loan_balance_drift(
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Members whose cached loan balance disagrees with their approved loans."""
    return find_loan_balance_drift(db)


@router.post("/loan-balance-drift/resync")
def resync_loan_balance_drift(
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Rewrite cached loan balances from source loans."""
    fixed = resync_loan_balances(db)
    write_audit_log(
        actor=actor_name(current_user),
        role=current_user.role.value,
        action="Resynced loan balances",
        details=f"members={fixed}"
    )
    return {"members_fixed": fixed}
