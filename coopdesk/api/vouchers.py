from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from coopdesk.core.audit import write_audit_log
from coopdesk.core.dependencies import actor_name, require_admin
from coopdesk.core.exceptions import ValidationError
from coopdesk.db.base import get_db
from coopdesk.models.member import Member
from coopdesk.schemas.voucher import VoucherDataset
from coopdesk.services.voucher import build_voucher_csv, build_voucher_dataset, mark_voucher_sent

router = APIRouter(prefix="/api/vouchers", tags=["vouchers"])


@router.get("/", response_model=VoucherDataset)
def get_voucher_dataset(
    period: Optional[str] = None,
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Monthly deduction voucher rows; an invalid or missing period means the current month."""
    return build_voucher_dataset(db, period)


@router.get("/export")
def export_voucher_csv(
    period: Optional[str] = None,
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Download the voucher as a spreadsheet-ready CSV."""
    dataset = build_voucher_dataset(db, period)
    content = "\ufeff" + build_voucher_csv(dataset)  # BOM so Excel reads UTF-8

    write_audit_log(
        actor=actor_name(current_user),
        role=current_user.role.value,
        action="Exported voucher",
        period=dataset["period"],
        details=f"rows={len(dataset['rows'])}"
    )
    return Response(
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="monthly-deduction-{dataset["period"]}.csv"'}
    )


@router.post("/{voucher_id}/sent")
def mark_sent(
    voucher_id: UUID,
    current_user: Member = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Record that a member's voucher was handed to the payroll office."""
    try:
        voucher = mark_voucher_sent(db, voucher_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    write_audit_log(
        actor=actor_name(current_user),
        role=current_user.role.value,
        action="Marked voucher sent",
        details=f"voucher={voucher.id} member={voucher.member_id}"
    )
    return {
        "id": str(voucher.id),
        "member_id": str(voucher.member_id),
        "status": voucher.status.value,
        "sent_at": voucher.sent_at.isoformat() if voucher.sent_at else None
    }
