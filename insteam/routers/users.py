# insteam/routers/users.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from insteam import crud, database, models, schemas
from insteam.routers.common import _translate_error
from insteam.security import require_admin

router = APIRouter(prefix="/admin/users", tags=["admin-users"])
get_db = database.get_db


@router.get("", response_model=List[schemas.UserOut])
def list_users(
    role: Optional[str] = Query(None),
    approval_status: Optional[str] = Query(None),
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    return crud.list_users(db, role=role, approval_status=approval_status, skip=skip, limit=limit)


@router.get("/{user_id}", response_model=schemas.UserOut)
def get_user(user_id: int, db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    try:
        return crud.get_user(db, user_id)
    except Exception as e:
        _translate_error(e)


@router.post("/{user_id}/approve", response_model=schemas.UserOut)
def approve_user(user_id: int, db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    try:
        return crud.approve_user(db, user_id, admin.id)
    except Exception as e:
        _translate_error(e)


@router.post("/{user_id}/reject", response_model=schemas.UserOut)
def reject_user(
    user_id: int,
    body: schemas.RejectIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return crud.reject_user(db, user_id, admin.id, body.reason)
    except Exception as e:
        _translate_error(e)
