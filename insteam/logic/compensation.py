# insteam/logic/compensation.py
# 제품 미준비 / 고객 부재 보상, 일정 변경
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from insteam import models
from insteam.core import job_state
from insteam.core.time_policy import _as_utc, _utcnow, kst_day_bounds
from insteam.errors import ConflictError, InvalidTransition, NotFoundError, PermissionDenied
from insteam.logic import notifications as N
from insteam.logic import points
from insteam.logic.system_settings import get_system_settings
from insteam.models import CompensationType, EscrowStatus, JobStatus, PointRole, UserRole

logger = logging.getLogger(__name__)

SCHEDULE_CHANGE_DEDUCTION = "schedule_change_fee"


def _require_job(db: Session, job_id: str) -> models.Job:
    job = db.get(models.Job, job_id)
    if not job:
        raise NotFoundError(f"Job not found: {job_id}")
    return job


def _rate_for(settings: models.SystemSettings, ctype: CompensationType) -> float:
    if ctype == CompensationType.PRODUCT_NOT_READY:
        return float(settings.product_not_ready_rate)
    return float(settings.customer_absent_rate)


def process_compensation(
    db: Session,
    job_id: str,
    compensation_type,
    reason: Optional[str],
    admin: models.User,
) -> models.JobCompensation:
    """
    보상금 = floor(에스크로 원금 × 보상률), 보관 잔액 한도.
    보상금은 시공자에게, 나머지는 판매자에게 환불하고 작업은 compensation_completed 로 종료.
    """
    ctype = CompensationType(compensation_type)
    job = _require_job(db, job_id)
    if job.status != ctype.value:
        raise ConflictError(f"job status {job.status} does not match compensation type {ctype.value}")
    job_state.assert_transition(job.status, JobStatus.COMPENSATION_COMPLETED)
    if job.contractor_id is None:
        raise ConflictError("job has no contractor")

    escrow = points.get_escrow(db, job.id)
    if escrow is None:
        raise NotFoundError(f"Escrow not found for job: {job.id}")
    if escrow.status not in (EscrowStatus.PENDING.value, EscrowStatus.DISPUTED.value):
        raise ConflictError(f"escrow already settled: status={escrow.status}")

    rate = _rate_for(get_system_settings(db), ctype)
    amount = min(int(math.floor(int(escrow.original_amount) * rate / 100)), int(escrow.amount))

    try:
        points.pay_compensation_from_escrow(db, job.id, amount, ctype.value, auto_commit=False)
        if int(escrow.amount) > 0:
            points.refund_escrow(db, job.id, reason=f"보상 처리 후 잔액 환불 ({ctype.value})", auto_commit=False)
        else:
            escrow.status = EscrowStatus.RELEASED.value
            escrow.released_at = _utcnow()

        record = models.JobCompensation(
            job_id=job.id,
            contractor_id=job.contractor_id,
            seller_id=job.seller_id,
            compensation_type=ctype.value,
            amount=amount,
            rate=rate,
            reason=reason,
            processed_by=admin.id,
            created_at=_utcnow(),
        )
        db.add(record)
        job_state.apply_transition(job, JobStatus.COMPENSATION_COMPLETED, admin.id, reason)
        job.final_amount = amount

        N.create_notification(
            db, user_id=job.contractor_id, title="보상금 지급",
            message=f"작업 {job.id} 보상금 {amount:,}P 가 지급되었습니다.", type="success", auto_commit=False,
        )
        N.create_notification(
            db, user_id=job.seller_id, title="보상 처리 완료",
            message=f"작업 {job.id} 보상 처리 완료 (보상금 {amount:,}P, 잔액 환불).", type="info", auto_commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    logger.info("compensation job=%s type=%s amount=%s rate=%s", job.id, ctype.value, amount, rate)
    return record


def process_schedule_change(
    db: Session,
    job_id: str,
    contractor: models.User,
    new_date: datetime,
    reason: Optional[str] = None,
) -> models.JobScheduleChange:
    job = _require_job(db, job_id)
    if contractor.role != UserRole.ADMIN.value and job.contractor_id != contractor.id:
        raise PermissionDenied("only the assigned contractor can change the schedule")
    if job.scheduled_at is None:
        raise ConflictError("job has no scheduled date")
    if not job_state.can_transition(job.status, JobStatus.SCHEDULE_CHANGED):
        raise InvalidTransition(job.status, JobStatus.SCHEDULE_CHANGED.value)

    rate = float(get_system_settings(db).schedule_change_fee_rate)
    fee = int(math.floor(int(job.escrow_amount or 0) * rate / 100))
    old_date = job.scheduled_at

    try:
        if fee > 0 and job.contractor_id is not None:
            points.deduct_points(
                db, job.contractor_id, PointRole.CONTRACTOR, fee,
                deduction_type=SCHEDULE_CHANGE_DEDUCTION,
                description=f"작업 {job.id} 일정 변경 수수료 ({rate:g}%)",
                job_id=job.id, auto_commit=False,
            )
        record = models.JobScheduleChange(
            job_id=job.id,
            contractor_id=job.contractor_id or contractor.id,
            old_date=old_date,
            new_date=_as_utc(new_date),
            reason=reason,
            fee_amount=fee,
            fee_rate=rate,
            created_at=_utcnow(),
        )
        db.add(record)
        job.scheduled_at = _as_utc(new_date)
        job_state.apply_transition(job, JobStatus.SCHEDULE_CHANGED, contractor.id, reason)
        N.create_notification(
            db, user_id=job.seller_id, title="시공 일정 변경",
            message=f"작업 {job.id} 일정이 변경되었습니다.", type="info",
            action_url=f"/jobs/{job.id}", auto_commit=False,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    logger.info("schedule change job=%s fee=%s", job.id, fee)
    return record


def request_reschedule(db: Session, job_id: str, actor: models.User, note: Optional[str] = None) -> models.Job:
    job = _require_job(db, job_id)
    if job.status not in (JobStatus.PRODUCT_NOT_READY.value, JobStatus.CUSTOMER_ABSENT.value):
        raise InvalidTransition(job.status, JobStatus.RESCHEDULE_REQUESTED.value)
    if not job_state.actor_may(
        actor.role, job.status, JobStatus.RESCHEDULE_REQUESTED,
        is_owner=(job.seller_id == actor.id), is_assignee=(job.contractor_id == actor.id),
    ):
        raise PermissionDenied("only the owner seller or admin can request a reschedule")

    job_state.apply_transition(job, JobStatus.RESCHEDULE_REQUESTED, actor.id, note)
    if job.contractor_id is not None:
        N.create_notification(
            db, user_id=job.contractor_id, title="일정 재조정 요청",
            message=f"작업 {job.id} 일정 재조정이 요청되었습니다.", type="info", auto_commit=False,
        )
    db.commit()
    db.refresh(job)
    return job


def get_contractor_compensations(db: Session, contractor_id: int) -> List[models.JobCompensation]:
    return (
        db.query(models.JobCompensation)
        .filter(models.JobCompensation.contractor_id == contractor_id)
        .order_by(models.JobCompensation.created_at.desc())
        .all()
    )


def get_job_compensations(db: Session, job_id: str) -> List[models.JobCompensation]:
    return (
        db.query(models.JobCompensation)
        .filter(models.JobCompensation.job_id == job_id)
        .order_by(models.JobCompensation.created_at.desc())
        .all()
    )


def get_job_schedule_changes(db: Session, job_id: str) -> List[models.JobScheduleChange]:
    return (
        db.query(models.JobScheduleChange)
        .filter(models.JobScheduleChange.job_id == job_id)
        .order_by(models.JobScheduleChange.created_at.desc())
        .all()
    )


def get_compensation_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    start, end = kst_day_bounds(now)
    rows = db.query(models.JobCompensation).all()
    by_type = {t.value: {"count": 0, "amount": 0} for t in CompensationType}
    today_count = today_amount = 0
    for r in rows:
        bucket = by_type.setdefault(r.compensation_type, {"count": 0, "amount": 0})
        bucket["count"] += 1
        bucket["amount"] += int(r.amount)
        created = _as_utc(r.created_at)
        if created is not None and start <= created < end:
            today_count += 1
            today_amount += int(r.amount)
    return {
        "total_count": len(rows),
        "total_amount": sum(int(r.amount) for r in rows),
        "today_count": today_count,
        "today_amount": today_amount,
        "by_type": by_type,
    }
