# insteam/routers/manual_charges.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import manual_charge as MC
from insteam.models import UserRole
from insteam.routers.common import _translate_error
from insteam.security import require_admin, require_approved, require_roles

router = APIRouter(prefix="/manual-charges", tags=["manual-charges"])
get_db = database.get_db


@router.post("", response_model=schemas.ManualChargeOut, status_code=status.HTTP_201_CREATED)
def request_charge(
    body: schemas.ManualChargeIn = Body(...),
    db: Session = Depends(get_db),
    seller: models.User = Depends(require_roles(UserRole.SELLER)),
    _approved: models.User = Depends(require_approved),
):
    try:
        return MC.create_charge_request(db, seller, body.amount)
    except Exception as e:
        _translate_error(e)


@router.get("/me", response_model=List[schemas.ManualChargeOut])
def my_requests(db: Session = Depends(get_db), user: models.User = Depends(require_approved)):
    return MC.get_user_charge_requests(db, user.id)


@router.get("/admin", response_model=List[schemas.ManualChargeOut])
def all_requests(
    status_: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    return MC.get_all_charge_requests(db, status_)


@router.post("/admin/{request_id}/complete", response_model=schemas.ManualChargeOut)
def complete(
    request_id: int,
    body: schemas.ManualChargeCompleteIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return MC.complete_charge_request(
            db, request_id, admin,
            deposit_name=body.deposit_name, deposit_amount=body.deposit_amount,
            deposit_date=body.deposit_date, note=body.note,
        )
    except Exception as e:
        _translate_error(e)


@router.post("/admin/{request_id}/cancel", response_model=schemas.ManualChargeOut)
def cancel(
    request_id: int,
    body: schemas.ManualChargeCancelIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return MC.cancel_charge_request(db, request_id, admin, body.reason)
    except Exception as e:
        _translate_error(e)
