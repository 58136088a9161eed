# insteam/routers/admin_escrow.py
from typing import Optional

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import points
from insteam.routers.common import _translate_error
from insteam.security import require_admin

router = APIRouter(prefix="/admin/escrow", tags=["admin-escrow"])
get_db = database.get_db


@router.post("/release-due", response_model=schemas.ReleaseDueOut)
def release_due(db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    """지급 예정 시각이 지난 에스크로를 즉시 일괄 지급 (워커와 동일 로직)."""
    return {"released": points.release_due_escrows(db)}


@router.post("/{job_id}/release", response_model=schemas.PointEscrowOut)
def release(job_id: str, db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    try:
        return points.release_escrow(db, job_id, admin_id=admin.id)
    except Exception as e:
        _translate_error(e)


@router.post("/{job_id}/dispute", response_model=schemas.PointEscrowOut)
def dispute(
    job_id: str,
    body: Optional[schemas.AdminNoteIn] = Body(None),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return points.dispute_escrow(db, job_id, admin.id, body.note if body else None)
    except Exception as e:
        _translate_error(e)


@router.post("/{job_id}/refund", response_model=schemas.PointEscrowOut)
def refund(
    job_id: str,
    body: schemas.RejectIn = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return points.refund_escrow(db, job_id, reason=body.reason)
    except Exception as e:
        _translate_error(e)
