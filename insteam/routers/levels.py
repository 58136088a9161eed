# insteam/routers/levels.py
from typing import List

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import levels as L
from insteam.routers.common import _translate_error
from insteam.security import get_current_user, require_admin

router = APIRouter(prefix="/levels", tags=["levels"])
get_db = database.get_db


@router.get("", response_model=List[schemas.LevelOut])
def list_levels(db: Session = Depends(get_db), _user: models.User = Depends(get_current_user)):
    return L.get_all_levels(db)


@router.post("/defaults", response_model=List[schemas.LevelOut])
def create_defaults(db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    return L.create_default_levels(db)


@router.post("", response_model=schemas.LevelOut, status_code=status.HTTP_201_CREATED)
def create_level(
    body: schemas.LevelIn = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return L.create_level(db, **body.model_dump())
    except Exception as e:
        _translate_error(e)


@router.patch("/{level_id}", response_model=schemas.LevelOut)
def update_level(
    level_id: int,
    body: schemas.LevelUpdate = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return L.update_level(db, level_id, **body.model_dump(exclude_unset=True))
    except Exception as e:
        _translate_error(e)


@router.delete("/{level_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_level(level_id: int, db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    try:
        L.delete_level(db, level_id)
    except Exception as e:
        _translate_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
