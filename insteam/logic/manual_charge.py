# insteam/logic/manual_charge.py
# 무통장 입금 충전 요청 → 관리자 입금 확인 → 판매자 포인트 충전
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from insteam import models
from insteam.core.time_policy import _as_utc, _utcnow
from insteam.errors import ConflictError, NotFoundError, PolicyViolation
from insteam.logic import notifications as N
from insteam.logic import points
from insteam.models import ChargeRequestStatus, PointRole

logger = logging.getLogger(__name__)


def create_charge_request(db: Session, user: models.User, amount: int) -> models.ManualChargeRequest:
    if amount is None or int(amount) <= 0:
        raise PolicyViolation("충전 금액은 0보다 커야 합니다.")
    req = models.ManualChargeRequest(
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
        amount=int(amount),
        status=ChargeRequestStatus.PENDING.value,
        created_at=_utcnow(),
    )
    db.add(req)
    db.flush()
    N.create_admin_notification(
        db,
        type="manual_charge_request",
        title="무통장 입금 충전 요청",
        message=f"{user.name}({user.email}) 님이 {int(amount):,}원 충전을 요청했습니다.",
        user_id=user.id,
        user_name=user.name,
        amount=int(amount),
        action_url=f"/admin/manual-charges/{req.id}",
        auto_commit=False,
    )
    db.commit()
    db.refresh(req)
    logger.info("manual charge requested id=%s user=%s amount=%s", req.id, user.id, amount)
    return req


def _require_pending(db: Session, request_id: int) -> models.ManualChargeRequest:
    req = db.get(models.ManualChargeRequest, request_id)
    if not req:
        raise NotFoundError(f"ManualChargeRequest not found: {request_id}")
    if req.status != ChargeRequestStatus.PENDING.value:
        raise ConflictError(f"charge request already processed: status={req.status}")
    return req


def complete_charge_request(
    db: Session,
    request_id: int,
    admin: models.User,
    *,
    deposit_name: str,
    deposit_amount: int,
    deposit_date: datetime,
    note: Optional[str] = None,
) -> models.ManualChargeRequest:
    """입금 확인 금액(deposit_amount)만큼 판매자 포인트를 충전한다."""
    req = _require_pending(db, request_id)
    if deposit_amount is None or int(deposit_amount) <= 0:
        raise PolicyViolation("입금 금액은 0보다 커야 합니다.")

    try:
        points.charge_points(
            db, req.user_id, PointRole.SELLER, int(deposit_amount),
            description=f"무통장 입금 충전 ({deposit_name})",
            admin_id=admin.id,
            idempotency_key=f"manual-charge:{req.id}",
            auto_commit=False,
        )
        req.status = ChargeRequestStatus.COMPLETED.value
        req.deposit_name = deposit_name
        req.deposit_amount = int(deposit_amount)
        req.deposit_date = _as_utc(deposit_date)
        req.admin_note = note
        req.processed_by = admin.id
        req.processed_at = _utcnow()
        N.create_notification(
            db, user_id=req.user_id, title="포인트 충전 완료",
            message=f"{int(deposit_amount):,}P 가 충전되었습니다.", type="success", auto_commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(req)
    logger.info("manual charge completed id=%s amount=%s admin=%s", req.id, deposit_amount, admin.id)
    return req


def cancel_charge_request(
    db: Session, request_id: int, admin: models.User, reason: str,
) -> models.ManualChargeRequest:
    req = _require_pending(db, request_id)
    req.status = ChargeRequestStatus.CANCELLED.value
    req.cancel_reason = reason
    req.processed_by = admin.id
    req.processed_at = _utcnow()
    N.create_notification(
        db, user_id=req.user_id, title="충전 요청 취소",
        message=f"충전 요청이 취소되었습니다. 사유: {reason}", type="warning", auto_commit=False,
    )
    db.commit()
    db.refresh(req)
    return req


def get_user_charge_requests(db: Session, user_id: int) -> List[models.ManualChargeRequest]:
    return (
        db.query(models.ManualChargeRequest)
        .filter(models.ManualChargeRequest.user_id == user_id)
        .order_by(models.ManualChargeRequest.created_at.desc(), models.ManualChargeRequest.id.desc())
        .all()
    )


def get_all_charge_requests(db: Session, status: Optional[str] = None) -> List[models.ManualChargeRequest]:
    q = db.query(models.ManualChargeRequest)
    if status:
        q = q.filter(models.ManualChargeRequest.status == status)
    return q.order_by(models.ManualChargeRequest.created_at.desc(), models.ManualChargeRequest.id.desc()).all()
