# insteam/routers/pricing.py
from typing import List

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import pricing as P
from insteam.routers.common import _translate_error
from insteam.security import get_current_user, require_admin

router = APIRouter(prefix="/pricing", tags=["pricing"])
get_db = database.get_db


@router.get("/travel-fee")
def read_travel_fee(db: Session = Depends(get_db), _user: models.User = Depends(get_current_user)):
    return {"travel_fee": P.get_travel_fee(db)}


@router.put("/travel-fee")
def update_travel_fee(
    body: schemas.TravelFeeIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return {"travel_fee": P.set_travel_fee(db, body.travel_fee, admin.id)}
    except Exception as e:
        _translate_error(e)


@router.post("/urgent-fee", response_model=schemas.UrgentFeeOut)
def quote_urgent_fee(
    body: schemas.UrgentFeeQuery = Body(...),
    db: Session = Depends(get_db),
    _user: models.User = Depends(get_current_user),
):
    """작업 등록 전 긴급 할증 미리보기"""
    fee, pct = P.urgent_surcharge(db, body.total, body.scheduled_at)
    return {"urgent_fee": fee, "additional_percentage": pct}


@router.get("/emergency", response_model=List[schemas.EmergencySettingOut])
def list_emergency(db: Session = Depends(get_db), _user: models.User = Depends(get_current_user)):
    rows = P.get_emergency_settings(db)
    db.commit()  # 최초 조회 시 시드된 기본값 저장
    return rows


@router.post("/emergency", response_model=schemas.EmergencySettingOut, status_code=status.HTTP_201_CREATED)
def create_emergency(
    body: schemas.EmergencySettingIn = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return P.create_emergency_setting(db, **body.model_dump())
    except Exception as e:
        _translate_error(e)


@router.patch("/emergency/{setting_id}", response_model=schemas.EmergencySettingOut)
def update_emergency(
    setting_id: int,
    body: schemas.EmergencySettingUpdate = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return P.update_emergency_setting(db, setting_id, **body.model_dump(exclude_unset=True))
    except Exception as e:
        _translate_error(e)


@router.delete("/emergency/{setting_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_emergency(setting_id: int, db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    try:
        P.delete_emergency_setting(db, setting_id)
    except Exception as e:
        _translate_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
