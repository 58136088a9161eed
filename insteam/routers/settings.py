# insteam/routers/settings.py
from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import system_settings as S
from insteam.routers.common import _translate_error
from insteam.security import get_current_user, require_admin

router = APIRouter(prefix="/settings", tags=["settings"])
get_db = database.get_db


@router.get("", response_model=schemas.SystemSettingsOut)
def read_settings(db: Session = Depends(get_db), _user: models.User = Depends(get_current_user)):
    row = S.get_system_settings(db)
    db.commit()  # 최초 조회 시 시드된 기본값 저장
    return row


@router.put("/escrow", response_model=schemas.SystemSettingsOut)
def update_escrow(
    body: schemas.EscrowHoursIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return S.update_escrow_auto_release_hours(db, body.escrow_auto_release_hours, admin.id)
    except Exception as e:
        _translate_error(e)


@router.put("/cancellation", response_model=schemas.SystemSettingsOut)
def update_cancellation(
    body: schemas.CancellationPolicyIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return S.update_cancellation_policy(
            db, body.max_cancellation_hours, body.max_daily_cancellations, body.cancellation_fee_rate, admin.id,
        )
    except Exception as e:
        _translate_error(e)


@router.put("/compensation", response_model=schemas.SystemSettingsOut)
def update_compensation(
    body: schemas.CompensationPolicyIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return S.update_compensation_policy(
            db, body.product_not_ready_rate, body.customer_absent_rate, body.schedule_change_fee_rate, admin.id,
        )
    except Exception as e:
        _translate_error(e)


@router.put("/fees", response_model=schemas.SystemSettingsOut)
def update_fees(
    body: schemas.FeeSettingsIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return S.update_fee_settings(db, body.seller_commission_rate, body.contractor_commission_rate, admin.id)
    except Exception as e:
        _translate_error(e)
