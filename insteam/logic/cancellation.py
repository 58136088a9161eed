# insteam/logic/cancellation.py
# 시공자 작업 취소 (수락 후 N시간 이내, 하루 M회 초과 시 수수료, 에스크로 환불)
from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from insteam import models
from insteam.core import job_state
from insteam.core.time_policy import _as_utc, _utcnow, hours_between, kst_day_bounds
from insteam.errors import ConflictError, NotFoundError
from insteam.logic import notifications as N
from insteam.logic import points
from insteam.logic.system_settings import get_system_settings
from insteam.models import EscrowStatus, JobStatus, PointRole

logger = logging.getLogger(__name__)

CANCELLATION_FEE_DEDUCTION = "job_cancellation_fee"


@dataclass
class CancellationCheck:
    can_cancel: bool
    reason: Optional[str] = None
    cancellation_number: int = 0
    total_cancellations_today: int = 0
    max_cancellation_hours: int = 0
    max_daily_cancellations: int = 0
    fee_amount: int = 0
    fee_rate: float = 0.0
    requires_fee: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_today_cancellations(
    db: Session, contractor_id: int, now: Optional[datetime] = None,
) -> List[models.JobCancellation]:
    """KST 달력 기준 오늘 취소 목록 (최신순)."""
    start, end = kst_day_bounds(now)
    return (
        db.query(models.JobCancellation)
        .filter(
            models.JobCancellation.contractor_id == contractor_id,
            models.JobCancellation.cancelled_at >= start,
            models.JobCancellation.cancelled_at < end,
        )
        .order_by(models.JobCancellation.cancelled_at.desc())
        .all()
    )


def get_contractor_cancellations(db: Session, contractor_id: int) -> List[models.JobCancellation]:
    return (
        db.query(models.JobCancellation)
        .filter(models.JobCancellation.contractor_id == contractor_id)
        .order_by(models.JobCancellation.cancelled_at.desc())
        .all()
    )


def get_job_cancellations(db: Session, job_id: str) -> List[models.JobCancellation]:
    return (
        db.query(models.JobCancellation)
        .filter(models.JobCancellation.job_id == job_id)
        .order_by(models.JobCancellation.cancelled_at.desc())
        .all()
    )


def check_cancellation(
    db: Session, job_id: str, contractor_id: int, now: Optional[datetime] = None,
) -> CancellationCheck:
    settings = get_system_settings(db)
    max_hours = int(settings.max_cancellation_hours)
    max_daily = int(settings.max_daily_cancellations)
    fee_rate = float(settings.cancellation_fee_rate)

    job = db.get(models.Job, job_id)
    if job is None:
        return CancellationCheck(False, "작업을 찾을 수 없습니다.")
    if job.contractor_id != contractor_id:
        return CancellationCheck(False, "해당 작업의 시공자가 아닙니다.")
    if job.status != JobStatus.ASSIGNED.value:
        return CancellationCheck(False, "수락된 작업만 취소할 수 있습니다.")
    if job.accepted_at is None:
        return CancellationCheck(False, "작업 수락 시간 정보가 없습니다.")

    now = _as_utc(now) or _utcnow()
    if hours_between(job.accepted_at, now) > max_hours:
        return CancellationCheck(
            False,
            f"수락 후 {max_hours}시간이 경과하여 취소할 수 없습니다.",
            max_cancellation_hours=max_hours,
            max_daily_cancellations=max_daily,
            fee_rate=fee_rate,
        )

    today = len(get_today_cancellations(db, contractor_id, now))
    number = len(get_contractor_cancellations(db, contractor_id)) + 1

    if today >= max_daily:
        fee = int(math.floor(int(job.escrow_amount or 0) * fee_rate / 100))
        return CancellationCheck(
            True,
            f"오늘 취소 가능 횟수({max_daily}회)를 초과하여 수수료가 적용됩니다.",
            cancellation_number=number,
            total_cancellations_today=today,
            max_cancellation_hours=max_hours,
            max_daily_cancellations=max_daily,
            fee_amount=fee,
            fee_rate=fee_rate,
            requires_fee=fee > 0,
        )

    return CancellationCheck(
        True,
        None,
        cancellation_number=number,
        total_cancellations_today=today,
        max_cancellation_hours=max_hours,
        max_daily_cancellations=max_daily,
        fee_amount=0,
        fee_rate=fee_rate,
        requires_fee=False,
    )


def cancel_job(
    db: Session, job_id: str, contractor: models.User, reason: str, *, now: Optional[datetime] = None,
) -> models.JobCancellation:
    """
    시공자 취소: 수수료 차감 → 취소 기록 → 작업 cancelled 종료.
    보관 중인 에스크로는 판매자에게 전액 환불된다.
    """
    now = _as_utc(now) or _utcnow()
    check = check_cancellation(db, job_id, contractor.id, now)
    if not check.can_cancel:
        if check.reason == "작업을 찾을 수 없습니다.":
            raise NotFoundError(f"Job not found: {job_id}")
        raise ConflictError(check.reason or "작업을 취소할 수 없습니다.")

    job = db.get(models.Job, job_id)
    try:
        if check.fee_amount > 0:
            points.deduct_points(
                db, contractor.id, PointRole.CONTRACTOR, check.fee_amount,
                deduction_type=CANCELLATION_FEE_DEDUCTION,
                description=f"작업 {job.id} 취소 수수료 ({check.fee_rate:g}%)",
                job_id=job.id,
                auto_commit=False,
            )

        record = models.JobCancellation(
            job_id=job.id,
            contractor_id=contractor.id,
            reason=reason,
            cancellation_number=check.cancellation_number,
            total_cancellations_today=check.total_cancellations_today,
            fee_amount=check.fee_amount,
            fee_rate=check.fee_rate,
            cancelled_at=now,
        )
        db.add(record)

        job_state.apply_transition(job, JobStatus.CANCELLED, contractor.id, f"시공자 취소: {reason}")
        job.cancelled_at = now
        job.cancellation_reason = reason
        escrow = points.get_escrow(db, job.id)
        if escrow is not None and escrow.status in (EscrowStatus.PENDING.value, EscrowStatus.DISPUTED.value):
            points.refund_escrow(db, job.id, reason=f"시공자 취소: {reason}", auto_commit=False)

        N.create_notification(
            db, user_id=job.seller_id, title="시공자 작업 취소",
            message=f"작업 {job.id} 을(를) {contractor.name} 시공자가 취소했습니다. 에스크로가 환불되었습니다.",
            type="warning", action_url=f"/jobs/{job.id}", auto_commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    logger.info(
        "job %s cancelled by contractor %s (no.%s, fee=%s)",
        job.id, contractor.id, record.cancellation_number, record.fee_amount,
    )
    return record


def get_cancellation_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    start, end = kst_day_bounds(now)
    total = db.query(func.count(models.JobCancellation.id)).scalar() or 0
    today = (
        db.query(func.count(models.JobCancellation.id))
        .filter(models.JobCancellation.cancelled_at >= start, models.JobCancellation.cancelled_at < end)
        .scalar()
        or 0
    )
    top_rows = (
        db.query(models.JobCancellation.contractor_id, func.count(models.JobCancellation.id).label("n"))
        .group_by(models.JobCancellation.contractor_id)
        .order_by(func.count(models.JobCancellation.id).desc(), models.JobCancellation.contractor_id.asc())
        .limit(10)
        .all()
    )
    names = {
        u.id: u.name
        for u in db.query(models.User).filter(models.User.id.in_([r[0] for r in top_rows])).all()
    } if top_rows else {}
    return {
        "total_cancellations": int(total),
        "today_cancellations": int(today),
        "top_contractors": [
            {"contractor_id": cid, "contractor_name": names.get(cid), "count": int(n)}
            for cid, n in top_rows
        ],
    }
