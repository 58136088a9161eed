# insteam/crud.py
# 사용자 / 작업(Job) 수명주기
from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from insteam import models, schemas
from insteam.config.feature_flags import FEATURE_FLAGS
from insteam.core import job_state
from insteam.core.time_policy import _as_utc, _utcnow
from insteam.errors import (
    ConflictError,
    InvalidTransition,
    NotFoundError,
    PermissionDenied,
    PolicyViolation,
)
from insteam.logic import chat, levels, points, pricing, satisfaction
from insteam.logic import notifications as N
from insteam.logic.rating_policy import is_suspended
from insteam.models import ApprovalStatus, Job, JobStatus, UserRole
from insteam.security import get_password_hash

logger = logging.getLogger(__name__)

JOB_ID_ALPHABET = string.ascii_uppercase + string.digits
JOB_ID_LENGTH = 6
JOB_ID_MAX_ATTEMPTS = 10


# =========================================================
# 👥 User
# =========================================================
def register_user(db: Session, payload: schemas.UserCreate) -> models.User:
    """공개 회원가입. 관리자 계정은 여기서 만들 수 없다 (insteam.create_admin 사용)."""
    role = UserRole(payload.role)
    if role == UserRole.ADMIN:
        raise PermissionDenied("admin accounts cannot be self-registered")
    if db.query(models.User.id).filter(models.User.email == payload.email).first():
        raise ConflictError(f"email already registered: {payload.email}")

    if role == UserRole.CUSTOMER or FEATURE_FLAGS.get("AUTO_APPROVE_USERS"):
        approval = ApprovalStatus.APPROVED
    else:
        approval = ApprovalStatus.PENDING

    data = payload.model_dump(exclude={"password", "role"})
    user = models.User(
        **data,
        hashed_password=get_password_hash(payload.password),
        role=role.value,
        approval_status=approval.value,
        approved_at=_utcnow() if approval == ApprovalStatus.APPROVED else None,
        level=levels.DEFAULT_LEVEL,
        created_at=_utcnow(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("user registered id=%s role=%s status=%s", user.id, user.role, user.approval_status)
    return user


def ensure_admin(db: Session, email: str, password: str, name: str = "관리자") -> Tuple[models.User, bool]:
    """운영자용 관리자 계정 생성. 이미 있으면 (기존 계정, False)."""
    existing = db.query(models.User).filter(models.User.email == email).first()
    if existing is not None:
        if existing.role != UserRole.ADMIN.value:
            raise ConflictError(f"email already used by a {existing.role} account: {email}")
        return existing, False

    admin = models.User(
        email=email,
        hashed_password=get_password_hash(password),
        name=name,
        role=UserRole.ADMIN.value,
        approval_status=ApprovalStatus.APPROVED.value,
        approved_at=_utcnow(),
        is_active=True,
        created_at=_utcnow(),
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("admin created id=%s email=%s", admin.id, email)
    return admin, True


def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFoundError(f"User not found: {user_id}")
    return user


def list_users(
    db: Session, *, role: Optional[str] = None, approval_status: Optional[str] = None,
    skip: int = 0, limit: int = 100,
) -> List[models.User]:
    q = db.query(models.User)
    if role:
        q = q.filter(models.User.role == role)
    if approval_status:
        q = q.filter(models.User.approval_status == approval_status)
    return q.order_by(models.User.id.asc()).offset(skip).limit(limit).all()


def approve_user(db: Session, user_id: int, admin_id: int) -> models.User:
    user = get_user(db, user_id)
    user.approval_status = ApprovalStatus.APPROVED.value
    user.rejection_reason = None
    user.approved_by = admin_id
    user.approved_at = _utcnow()
    N.create_notification(
        db, user_id=user.id, title="가입 승인", message="관리자 승인이 완료되었습니다.",
        type="success", auto_commit=False,
    )
    db.commit()
    db.refresh(user)
    return user


def reject_user(db: Session, user_id: int, admin_id: int, reason: str) -> models.User:
    user = get_user(db, user_id)
    user.approval_status = ApprovalStatus.REJECTED.value
    user.rejection_reason = reason
    user.approved_by = admin_id
    user.approved_at = None
    N.create_notification(
        db, user_id=user.id, title="가입 거절", message=f"가입 신청이 거절되었습니다. 사유: {reason}",
        type="error", auto_commit=False,
    )
    db.commit()
    db.refresh(user)
    return user


# =========================================================
# 🧵 Job
# =========================================================
def _generate_job_id(db: Session) -> str:
    for _ in range(JOB_ID_MAX_ATTEMPTS):
        candidate = "".join(secrets.choice(JOB_ID_ALPHABET) for _ in range(JOB_ID_LENGTH))
        if db.get(Job, candidate) is None:
            return candidate
    raise ConflictError("could not allocate a unique job id")


def get_job(db: Session, job_id: str) -> Job:
    job = db.get(Job, job_id)
    if not job:
        raise NotFoundError(f"Job not found: {job_id}")
    return job


def list_jobs(
    db: Session,
    *,
    status: Optional[str] = None,
    seller_id: Optional[int] = None,
    contractor_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[Job]:
    q = db.query(Job)
    if status:
        q = q.filter(Job.status == JobStatus(status).value)
    if seller_id is not None:
        q = q.filter(Job.seller_id == seller_id)
    if contractor_id is not None:
        q = q.filter(Job.contractor_id == contractor_id)
    return q.order_by(Job.created_at.desc()).offset(skip).limit(limit).all()


def list_open_jobs(db: Session, skip: int = 0, limit: int = 100) -> List[Job]:
    return (
        db.query(Job)
        .filter(Job.status == JobStatus.PENDING.value)
        .order_by(Job.scheduled_at.asc(), Job.created_at.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_job_counts_by_status(
    db: Session, *, seller_id: Optional[int] = None, contractor_id: Optional[int] = None,
) -> Dict[str, int]:
    counts = {s.value: 0 for s in JobStatus}
    q = db.query(Job.status, func.count(Job.id))
    if seller_id is not None:
        q = q.filter(Job.seller_id == seller_id)
    if contractor_id is not None:
        q = q.filter(Job.contractor_id == contractor_id)
    for status, n in q.group_by(Job.status).all():
        counts[status] = int(n)
    return counts


def _record_step(job: Job, status: JobStatus, actor_id: Optional[int], note: Optional[str]) -> None:
    job.progress_steps.append(
        models.JobProgressStep(status=status.value, actor_id=actor_id, note=note, created_at=_utcnow())
    )


def create_job(
    db: Session, seller: models.User, payload: schemas.JobCreate, *, now: Optional[datetime] = None,
) -> Job:
    """
    작업 생성 + 판매자 포인트 에스크로를 한 트랜잭션으로 처리.
    잔액이 부족하면 작업도 만들어지지 않는다 (InsufficientPoints).
    """
    if seller.role != UserRole.SELLER.value:
        raise PermissionDenied("only sellers can create jobs")

    items_total = sum(i.quantity * i.unit_price for i in payload.items)
    travel_fee = payload.travel_fee if payload.travel_fee is not None else pricing.get_travel_fee(db)
    urgent_fee, urgent_pct = pricing.urgent_surcharge(db, items_total, payload.scheduled_at, now)

    if payload.budget_amount is not None:
        amount = int(payload.budget_amount)
    else:
        amount = items_total + travel_fee + urgent_fee
    if amount <= 0:
        raise PolicyViolation("작업 금액은 0보다 커야 합니다.")

    job = Job(
        id=_generate_job_id(db),
        title=payload.title,
        description=payload.description,
        address=payload.address,
        scheduled_at=_as_utc(payload.scheduled_at),
        seller_id=seller.id,
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        status=JobStatus.PENDING.value,
        travel_fee=travel_fee,
        urgent_fee=urgent_fee,
        urgent_fee_percent=urgent_pct,
        escrow_amount=amount,
        pickup_company_name=payload.pickup_company_name or seller.pickup_company_name,
        pickup_phone=payload.pickup_phone or seller.pickup_phone,
        pickup_address=payload.pickup_address or seller.pickup_address,
        requirements=payload.requirements,
        created_at=_utcnow(),
    )
    for it in payload.items:
        job.items.append(models.JobItem(
            name=it.name, quantity=it.quantity, unit_price=it.unit_price,
            total_price=it.quantity * it.unit_price,
        ))
    _record_step(job, JobStatus.PENDING, seller.id, "작업 등록")

    try:
        db.add(job)
        db.flush()
        points.escrow_points(db, job, auto_commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    logger.info("job created id=%s seller=%s escrow=%s", job.id, seller.id, amount)
    return job


def accept_job(db: Session, job_id: str, contractor: models.User, *, now: Optional[datetime] = None) -> Job:
    if contractor.role != UserRole.CONTRACTOR.value:
        raise PermissionDenied("only contractors can accept jobs")
    if contractor.approval_status != ApprovalStatus.APPROVED.value:
        raise PermissionDenied("contractor is not approved")
    if is_suspended(contractor, now):
        raise PermissionDenied("contractor is suspended from accepting new jobs")

    job = get_job(db, job_id)
    job_state.assert_transition(job.status, JobStatus.ASSIGNED)

    if job.scheduled_at is not None:
        clash = (
            db.query(Job.id)
            .filter(
                Job.contractor_id == contractor.id,
                Job.scheduled_at == job.scheduled_at,
                Job.status.in_([s.value for s in job_state.ACTIVE]),
                Job.id != job.id,
            )
            .first()
        )
        if clash:
            raise ConflictError(f"contractor already has a job at {job.scheduled_at}: {clash[0]}")

    job.contractor_id = contractor.id
    job.accepted_at = _as_utc(now) or _utcnow()
    job_state.apply_transition(job, JobStatus.ASSIGNED, contractor.id, "시공자 수락")

    escrow = points.get_escrow(db, job.id)
    if escrow is not None:
        escrow.contractor_id = contractor.id
    chat.get_or_create_chat_room(db, job.id, [job.seller_id, contractor.id], auto_commit=False)
    N.create_notification(
        db, user_id=job.seller_id, title="작업 배정",
        message=f"작업 {job.id} 을(를) {contractor.name} 시공자가 수락했습니다.",
        type="success", action_url=f"/jobs/{job.id}", auto_commit=False,
    )
    db.commit()
    db.refresh(job)
    return job


def _on_completed(db: Session, job: Job, now: datetime) -> None:
    job.completed_at = now
    points.schedule_release(db, job, completed_at=now, auto_commit=False)

    contractor = db.get(models.User, job.contractor_id)
    if contractor is not None:
        contractor.completed_jobs = int(contractor.completed_jobs or 0) + 1
        old, new = levels.recompute_contractor_level(db, contractor)
        if new > old:
            N.create_notification(
                db, user_id=contractor.id, title="등급 상승",
                message=f"축하합니다! {levels.level_name(db, new)} 등급이 되었습니다.",
                type="success", auto_commit=False,
            )

    if FEATURE_FLAGS.get("AUTO_SEND_SURVEY"):
        satisfaction.create_survey(db, job, auto_commit=False)

    N.create_notification(
        db, user_id=job.seller_id, title="시공 완료",
        message=f"작업 {job.id} 시공이 완료되었습니다.", type="success", auto_commit=False,
    )


def _on_cancelled(db: Session, job: Job, now: datetime, reason: Optional[str]) -> None:
    job.cancelled_at = now
    job.cancellation_reason = reason
    escrow = points.get_escrow(db, job.id)
    if escrow is not None and escrow.status in ("pending", "disputed"):
        points.refund_escrow(db, job.id, reason=reason or "작업 취소", auto_commit=False)
    if job.contractor_id is not None:
        N.create_notification(
            db, user_id=job.contractor_id, title="작업 취소",
            message=f"작업 {job.id} 이(가) 취소되었습니다.", type="warning", auto_commit=False,
        )


def update_job_status(
    db: Session,
    job_id: str,
    to_status,
    actor: models.User,
    note: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Job:
    to = JobStatus(to_status)
    if to == JobStatus.ASSIGNED:
        if actor.role == UserRole.CONTRACTOR.value:
            return accept_job(db, job_id, actor, now=now)
        raise PermissionDenied("only a contractor can take a job")
    if to in job_state.DEDICATED_TARGETS:
        raise ConflictError(
            f"{to.value} is set by {job_state.DEDICATED_TARGETS[to]}, not by a plain status update"
        )

    job = get_job(db, job_id)
    if not job_state.can_transition(job.status, to):
        raise InvalidTransition(job.status, to.value)
    if not job_state.actor_may(
        actor.role, job.status, to,
        is_owner=(job.seller_id == actor.id),
        is_assignee=(job.contractor_id == actor.id),
    ):
        raise PermissionDenied(f"{actor.role} may not move job {job.id}: {job.status} -> {to.value}")

    when = _as_utc(now) or _utcnow()
    try:
        job_state.apply_transition(job, to, actor.id, note)
        if to == JobStatus.COMPLETED:
            _on_completed(db, job, when)
        elif to == JobStatus.CANCELLED:
            _on_cancelled(db, job, when, note)
        else:
            other = job.contractor_id if actor.id == job.seller_id else job.seller_id
            if other is not None and other != actor.id:
                N.create_notification(
                    db, user_id=other, title="작업 상태 변경",
                    message=f"작업 {job.id} 상태가 {to.value} 로 변경되었습니다.",
                    type="info", action_url=f"/jobs/{job.id}", auto_commit=False,
                )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(job)
    return job


def update_final_amount(db: Session, job_id: str, amount: int, actor: models.User) -> Job:
    job = get_job(db, job_id)
    if actor.role != UserRole.ADMIN.value and job.seller_id != actor.id:
        raise PermissionDenied("only the owner seller or admin can set the final amount")
    if amount is None or int(amount) < 0:
        raise PolicyViolation("최종 금액은 0 이상이어야 합니다.")
    job.final_amount = int(amount)
    job.updated_at = _utcnow()
    db.commit()
    db.refresh(job)
    return job


def delete_job(db: Session, job_id: str, actor: models.User) -> None:
    """대기(pending) 작업만 삭제. 에스크로는 판매자에게 환불."""
    job = get_job(db, job_id)
    if actor.role != UserRole.ADMIN.value and job.seller_id != actor.id:
        raise PermissionDenied("only the owner seller or admin can delete the job")
    if job.status != JobStatus.PENDING.value:
        raise ConflictError(f"only pending jobs can be deleted: status={job.status}")

    try:
        escrow = points.get_escrow(db, job.id)
        if escrow is not None and escrow.status in ("pending", "disputed"):
            points.refund_escrow(db, job.id, reason="작업 삭제", auto_commit=False)
        room = chat.get_room_for_job(db, job.id)
        if room is not None:
            db.delete(room)
        db.delete(job)
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("job deleted id=%s by=%s", job_id, actor.id)
