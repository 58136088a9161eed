# insteam/routers/cancellations.py
from typing import List

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import cancellation
from insteam.models import UserRole
from insteam.routers.common import _translate_error
from insteam.security import require_admin, require_approved, require_roles

router = APIRouter(prefix="/cancellations", tags=["cancellations"])
get_db = database.get_db

contractor_only = require_roles(UserRole.CONTRACTOR)


@router.get("/jobs/{job_id}/check", response_model=schemas.CancellationCheckOut)
def check(
    job_id: str,
    db: Session = Depends(get_db),
    contractor: models.User = Depends(contractor_only),
    _approved: models.User = Depends(require_approved),
):
    """취소 가능 여부 + 수수료 미리보기"""
    return cancellation.check_cancellation(db, job_id, contractor.id).to_dict()


@router.post("/jobs/{job_id}", response_model=schemas.JobCancellationOut, status_code=status.HTTP_201_CREATED)
def cancel(
    job_id: str,
    body: schemas.CancelJobIn = Body(...),
    db: Session = Depends(get_db),
    contractor: models.User = Depends(contractor_only),
    _approved: models.User = Depends(require_approved),
):
    try:
        return cancellation.cancel_job(db, job_id, contractor, body.reason)
    except Exception as e:
        _translate_error(e)


@router.get("/me", response_model=List[schemas.JobCancellationOut])
def my_cancellations(db: Session = Depends(get_db), contractor: models.User = Depends(contractor_only)):
    return cancellation.get_contractor_cancellations(db, contractor.id)


@router.get("/me/today", response_model=List[schemas.JobCancellationOut])
def my_today(db: Session = Depends(get_db), contractor: models.User = Depends(contractor_only)):
    return cancellation.get_today_cancellations(db, contractor.id)


@router.get("/jobs/{job_id}", response_model=List[schemas.JobCancellationOut])
def job_cancellations(job_id: str, db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    return cancellation.get_job_cancellations(db, job_id)


@router.get("/admin/contractors/{contractor_id}", response_model=List[schemas.JobCancellationOut])
def contractor_cancellations(
    contractor_id: int, db: Session = Depends(get_db), _admin: models.User = Depends(require_admin),
):
    return cancellation.get_contractor_cancellations(db, contractor_id)


@router.get("/admin/stats", response_model=schemas.CancellationStatsOut)
def stats(db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    return cancellation.get_cancellation_stats(db)
