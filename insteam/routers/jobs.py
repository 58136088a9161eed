# insteam/routers/jobs.py
from typing import Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from insteam import crud, database, models, schemas
from insteam.logic import points
from insteam.models import UserRole
from insteam.routers.common import _translate_error
from insteam.security import require_approved, require_roles

router = APIRouter(prefix="/jobs", tags=["jobs"])
get_db = database.get_db


def _scope(user: models.User) -> dict:
    """판매자/시공자는 자기 작업만."""
    if user.role == UserRole.SELLER.value:
        return {"seller_id": user.id}
    if user.role == UserRole.CONTRACTOR.value:
        return {"contractor_id": user.id}
    if user.role == UserRole.ADMIN.value:
        return {}
    raise HTTPException(status_code=403, detail="customers cannot list jobs")


def _visible(job: models.Job, user: models.User) -> None:
    if user.role == UserRole.ADMIN.value:
        return
    if job.seller_id == user.id or job.contractor_id == user.id:
        return
    # 대기 중인 작업은 시공자가 수락 전에 볼 수 있어야 함
    if user.role == UserRole.CONTRACTOR.value and job.status == models.JobStatus.PENDING.value:
        return
    raise HTTPException(status_code=403, detail="not your job")


# -------------------------------------------------------------------
# 작업 등록 (판매자), 에스크로 동시 처리
# -------------------------------------------------------------------
@router.post("", response_model=schemas.JobOut, status_code=status.HTTP_201_CREATED)
def create_job(
    body: schemas.JobCreate = Body(...),
    db: Session = Depends(get_db),
    seller: models.User = Depends(require_roles(UserRole.SELLER)),
    _approved: models.User = Depends(require_approved),
):
    try:
        return crud.create_job(db, seller, body)
    except Exception as e:
        _translate_error(e)


@router.get("", response_model=List[schemas.JobOut])
def list_jobs(
    status_: Optional[models.JobStatus] = Query(None, alias="status"),
    seller_id: Optional[int] = None,
    contractor_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_approved),
):
    filters = {"seller_id": seller_id, "contractor_id": contractor_id}
    filters.update(_scope(user))
    return crud.list_jobs(
        db, status=status_.value if status_ else None, skip=skip, limit=limit, **filters,
    )


@router.get("/open", response_model=List[schemas.JobOut])
def list_open_jobs(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    _user: models.User = Depends(require_roles(UserRole.CONTRACTOR, UserRole.ADMIN)),
    _approved: models.User = Depends(require_approved),
):
    return crud.list_open_jobs(db, skip=skip, limit=limit)


@router.get("/counts", response_model=Dict[str, int])
def job_counts(db: Session = Depends(get_db), user: models.User = Depends(require_approved)):
    return crud.get_job_counts_by_status(db, **_scope(user))


@router.get("/{job_id}", response_model=schemas.JobOut)
def get_job(job_id: str, db: Session = Depends(get_db), user: models.User = Depends(require_approved)):
    try:
        job = crud.get_job(db, job_id)
        _visible(job, user)
        return job
    except Exception as e:
        _translate_error(e)


@router.post("/{job_id}/accept", response_model=schemas.JobOut)
def accept_job(
    job_id: str,
    db: Session = Depends(get_db),
    contractor: models.User = Depends(require_roles(UserRole.CONTRACTOR)),
):
    # 승인/정지 여부는 crud.accept_job 에서 검사
    try:
        return crud.accept_job(db, job_id, contractor)
    except Exception as e:
        _translate_error(e)


@router.patch("/{job_id}/status", response_model=schemas.JobOut)
def update_job_status(
    job_id: str,
    body: schemas.JobStatusUpdate = Body(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(require_approved),
):
    try:
        return crud.update_job_status(db, job_id, body.status, user, body.note)
    except Exception as e:
        _translate_error(e)


@router.patch("/{job_id}/final-amount", response_model=schemas.JobOut)
def update_final_amount(
    job_id: str,
    body: schemas.FinalAmountIn = Body(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(require_approved),
):
    try:
        return crud.update_final_amount(db, job_id, body.final_amount, user)
    except Exception as e:
        _translate_error(e)


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_job(job_id: str, db: Session = Depends(get_db), user: models.User = Depends(require_approved)):
    try:
        crud.delete_job(db, job_id, user)
    except Exception as e:
        _translate_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{job_id}/escrow", response_model=schemas.PointEscrowOut)
def get_job_escrow(job_id: str, db: Session = Depends(get_db), user: models.User = Depends(require_approved)):
    try:
        _visible(crud.get_job(db, job_id), user)
        escrow = points.get_escrow(db, job_id)
        if escrow is None:
            raise HTTPException(status_code=404, detail="escrow not found")
        return escrow
    except Exception as e:
        _translate_error(e)
