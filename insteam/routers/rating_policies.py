# insteam/routers/rating_policies.py
from typing import List

from fastapi import APIRouter, Body, Depends, Response, status
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import rating_policy as RP
from insteam.routers.common import _translate_error
from insteam.security import require_admin

router = APIRouter(prefix="/admin/rating-policies", tags=["admin-rating-policies"])
get_db = database.get_db


@router.post("/reset", status_code=status.HTTP_204_NO_CONTENT)
def reset(db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    """수수료/정지 정책을 기본값으로 초기화 (기존 정책 삭제)"""
    RP.initialize_default_policies(db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------- 수수료율 ----------------
@router.get("/commission", response_model=List[schemas.CommissionPolicyOut])
def list_commission(db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    rows = RP.get_commission_policies(db)
    db.commit()  # 최초 조회 시 시드된 기본값 저장
    return rows


@router.post("/commission", response_model=schemas.CommissionPolicyOut, status_code=status.HTTP_201_CREATED)
def create_commission(
    body: schemas.CommissionPolicyIn = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return RP.create_commission_policy(db, **body.model_dump())
    except Exception as e:
        _translate_error(e)


@router.put("/commission/{policy_id}", response_model=schemas.CommissionPolicyOut)
def update_commission(
    policy_id: int,
    body: schemas.CommissionPolicyIn = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return RP.update_commission_policy(db, policy_id, **body.model_dump())
    except Exception as e:
        _translate_error(e)


@router.delete("/commission/{policy_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_commission(policy_id: int, db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    try:
        RP.delete_commission_policy(db, policy_id)
    except Exception as e:
        _translate_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------- 정지 ----------------
@router.get("/suspension", response_model=List[schemas.SuspensionPolicyOut])
def list_suspension(db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    rows = RP.get_suspension_policies(db)
    db.commit()
    return rows


@router.post("/suspension", response_model=schemas.SuspensionPolicyOut, status_code=status.HTTP_201_CREATED)
def create_suspension(
    body: schemas.SuspensionPolicyIn = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return RP.create_suspension_policy(db, **body.model_dump())
    except Exception as e:
        _translate_error(e)


@router.put("/suspension/{policy_id}", response_model=schemas.SuspensionPolicyOut)
def update_suspension(
    policy_id: int,
    body: schemas.SuspensionPolicyIn = Body(...),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    try:
        return RP.update_suspension_policy(db, policy_id, **body.model_dump())
    except Exception as e:
        _translate_error(e)


@router.delete("/suspension/{policy_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_suspension(policy_id: int, db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    try:
        RP.delete_suspension_policy(db, policy_id)
    except Exception as e:
        _translate_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
