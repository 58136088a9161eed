# insteam/routers/compensations.py
from typing import Any, Dict, List

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import compensation
from insteam.models import UserRole
from insteam.routers.common import _translate_error
from insteam.security import require_admin, require_approved, require_roles

router = APIRouter(prefix="/compensations", tags=["compensations"])
get_db = database.get_db


@router.post("/jobs/{job_id}", response_model=schemas.JobCompensationOut, status_code=status.HTTP_201_CREATED)
def process(
    job_id: str,
    body: schemas.CompensationIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    """제품 미준비/고객 부재 보상 처리 (관리자)"""
    try:
        return compensation.process_compensation(db, job_id, body.compensation_type, body.reason, admin)
    except Exception as e:
        _translate_error(e)


@router.post(
    "/jobs/{job_id}/schedule-change",
    response_model=schemas.JobScheduleChangeOut,
    status_code=status.HTTP_201_CREATED,
)
def schedule_change(
    job_id: str,
    body: schemas.ScheduleChangeIn = Body(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(require_roles(UserRole.CONTRACTOR, UserRole.ADMIN)),
    _approved: models.User = Depends(require_approved),
):
    try:
        return compensation.process_schedule_change(db, job_id, user, body.new_date, body.reason)
    except Exception as e:
        _translate_error(e)


@router.post("/jobs/{job_id}/reschedule-request", response_model=schemas.JobOut)
def reschedule_request(
    job_id: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_roles(UserRole.SELLER, UserRole.ADMIN)),
    _approved: models.User = Depends(require_approved),
):
    try:
        return compensation.request_reschedule(db, job_id, user)
    except Exception as e:
        _translate_error(e)


@router.get("/me", response_model=List[schemas.JobCompensationOut])
def my_compensations(
    db: Session = Depends(get_db), contractor: models.User = Depends(require_roles(UserRole.CONTRACTOR)),
):
    return compensation.get_contractor_compensations(db, contractor.id)


@router.get("/jobs/{job_id}", response_model=List[schemas.JobCompensationOut])
def job_compensations(job_id: str, db: Session = Depends(get_db), _user: models.User = Depends(require_approved)):
    return compensation.get_job_compensations(db, job_id)


@router.get("/jobs/{job_id}/schedule-changes", response_model=List[schemas.JobScheduleChangeOut])
def job_schedule_changes(job_id: str, db: Session = Depends(get_db), _user: models.User = Depends(require_approved)):
    return compensation.get_job_schedule_changes(db, job_id)


@router.get("/admin/stats", response_model=Dict[str, Any])
def stats(db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    return compensation.get_compensation_stats(db)
