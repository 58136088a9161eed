# insteam/routers/points.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import points
from insteam.models import PointRole
from insteam.routers.common import _translate_error
from insteam.security import require_admin, require_approved

router = APIRouter(prefix="/points", tags=["points"])
get_db = database.get_db


def _own_role(user: models.User, role: PointRole) -> str:
    if user.role != role.value:
        raise HTTPException(status_code=403, detail=f"{user.role} cannot use {role.value} points")
    return role.value


# ---------------------------
# 💰 내 포인트 잔액 / 내역
# ---------------------------
@router.get("/balance", response_model=schemas.PointBalanceOut)
def read_balance(
    role: PointRole,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_approved),
):
    return points.get_balance(db, user.id, _own_role(user, role))


@router.get("/transactions", response_model=List[schemas.PointTransactionOut])
def read_transactions(
    role: PointRole,
    limit: int = 100,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_approved),
):
    return points.get_transaction_history(db, user.id, _own_role(user, role), limit=limit)


# ---------------------------
# 🏧 출금 요청 (요청 시점 차감)
# ---------------------------
@router.post("/withdrawals", response_model=schemas.PointTransactionOut, status_code=status.HTTP_201_CREATED)
def request_withdrawal(
    body: schemas.WithdrawalIn = Body(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(require_approved),
):
    try:
        return points.request_withdrawal(
            db, user.id, _own_role(user, body.role), body.amount,
            bank_name=body.bank_name, bank_account=body.bank_account, account_holder=body.account_holder,
        )
    except Exception as e:
        _translate_error(e)


# ---------------------------
# 🛠️ 관리자
# ---------------------------
@router.post("/admin/charge", response_model=schemas.PointTransactionOut, status_code=status.HTTP_201_CREATED)
def admin_charge(
    body: schemas.AdminChargeIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        points.check_external_key(body.idempotency_key)
        return points.charge_points(
            db, body.user_id, body.role, body.amount,
            description=body.description, admin_id=admin.id, idempotency_key=body.idempotency_key,
        )
    except Exception as e:
        _translate_error(e)


@router.post("/admin/deduct", response_model=schemas.PointTransactionOut, status_code=status.HTTP_201_CREATED)
def admin_deduct(
    body: schemas.DeductIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return points.deduct_points(
            db, body.user_id, body.role, body.amount,
            deduction_type=body.deduction_type, description=body.description,
            job_id=body.job_id, admin_id=admin.id,
        )
    except Exception as e:
        _translate_error(e)


@router.get("/admin/withdrawals/pending", response_model=List[schemas.PointTransactionOut])
def pending_withdrawals(db: Session = Depends(get_db), _admin: models.User = Depends(require_admin)):
    return points.get_pending_withdrawals(db)


@router.post("/admin/withdrawals/{transaction_id}/approve", response_model=schemas.PointTransactionOut)
def approve_withdrawal(
    transaction_id: int,
    body: Optional[schemas.AdminNoteIn] = Body(None),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return points.approve_withdrawal(db, transaction_id, admin.id, body.note if body else None)
    except Exception as e:
        _translate_error(e)


@router.post("/admin/withdrawals/{transaction_id}/reject", response_model=schemas.PointTransactionOut)
def reject_withdrawal(
    transaction_id: int,
    body: schemas.RejectIn = Body(...),
    db: Session = Depends(get_db),
    admin: models.User = Depends(require_admin),
):
    try:
        return points.reject_withdrawal(db, transaction_id, admin.id, body.reason)
    except Exception as e:
        _translate_error(e)
