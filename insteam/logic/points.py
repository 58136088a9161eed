# insteam/logic/points.py
# 포인트 원장 + 에스크로
#
# 규칙
# - 잔액은 절대 음수가 되지 않는다 (차감 전 검사 → InsufficientPoints)
# - 잔액 변경 1회 = 거래 1건, balance_after 는 변경 후 잔액
# - 에스크로는 한 번만 지급/환불된다 (status 로 보호)
# - idempotency_key 가 이미 있으면 기존 거래를 그대로 돌려준다 (내용이 다르면 ConflictError)
from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from insteam import models
from insteam.core.time_policy import _as_utc, _utcnow
from insteam.errors import ConflictError, InsufficientPoints, NotFoundError, PolicyViolation
from insteam.logic import notifications as N
from insteam.logic import rating_policy
from insteam.logic.system_settings import get_system_settings
from insteam.models import (
    EscrowStatus,
    JobStatus,
    PointBalance,
    PointEscrow,
    PointRole,
    PointTransaction,
    TransactionStatus,
    TransactionType,
)

logger = logging.getLogger(__name__)

_ESCROW_OPEN = (EscrowStatus.PENDING.value, EscrowStatus.DISPUTED.value)

# 내부 원장 처리용 키 접두어 (외부 요청 키로 사용 불가)
INTERNAL_KEY_PREFIXES = ("escrow:", "escrow-refund:", "release:", "compensation:", "withdraw-reject:", "manual-charge:")


def _role(role) -> str:
    value = role.value if isinstance(role, PointRole) else str(role)
    if value not in (PointRole.SELLER.value, PointRole.CONTRACTOR.value):
        raise PolicyViolation(f"포인트 계정 역할이 올바르지 않습니다: {value}")
    return value


def _require_positive(amount: int) -> int:
    if amount is None or int(amount) <= 0:
        raise PolicyViolation("금액은 0보다 커야 합니다.")
    return int(amount)


# ---------------------------------------------------------------------
# 잔액
# ---------------------------------------------------------------------
def get_or_create_balance(db: Session, user_id: int, role) -> PointBalance:
    role = _role(role)
    bal = (
        db.query(PointBalance)
        .filter(PointBalance.user_id == user_id, PointBalance.role == role)
        .first()
    )
    if bal is None:
        bal = PointBalance(user_id=user_id, role=role, balance=0, total_charged=0, total_withdrawn=0)
        db.add(bal)
        db.flush()
    return bal


def get_balance(db: Session, user_id: int, role) -> PointBalance:
    bal = get_or_create_balance(db, user_id, role)
    db.commit()
    return bal


def _find_by_key(db: Session, idempotency_key: Optional[str]) -> Optional[PointTransaction]:
    if not idempotency_key:
        return None
    return db.query(PointTransaction).filter(PointTransaction.idempotency_key == idempotency_key).first()


def check_external_key(idempotency_key: Optional[str]) -> None:
    """외부(관리자/PG) 요청 키가 내부 원장 키 공간을 침범하지 못하게 한다."""
    if idempotency_key and idempotency_key.startswith(INTERNAL_KEY_PREFIXES):
        raise PolicyViolation(f"예약된 idempotency_key 접두어입니다: {idempotency_key}")


def _replay(
    db: Session, idempotency_key: Optional[str], *, user_id: int, role, type: TransactionType, amount: int,
    job_id: Optional[str] = None,
) -> Optional[PointTransaction]:
    """같은 키 + 같은 내용이면 기존 거래, 내용이 다르면 ConflictError."""
    existing = _find_by_key(db, idempotency_key)
    if existing is None:
        return None
    same = (
        existing.user_id == user_id
        and existing.role == _role(role)
        and existing.type == type.value
        and int(existing.amount) == int(amount)
        and existing.job_id == job_id
    )
    if not same:
        raise ConflictError(f"idempotency_key already used for a different transaction: {idempotency_key}")
    logger.info("idempotent replay key=%s tx=%s", idempotency_key, existing.id)
    return existing


def _apply(
    db: Session,
    *,
    user_id: int,
    role,
    type: TransactionType,
    amount: int,
    description: str,
    status: TransactionStatus = TransactionStatus.COMPLETED,
    idempotency_key: Optional[str] = None,
    **extra,
) -> PointTransaction:
    """
    잔액을 amount(부호 포함)만큼 바꾸고 거래 1건을 남긴다. commit 은 호출자 책임.
    """
    existing = _replay(
        db, idempotency_key, user_id=user_id, role=role, type=type, amount=amount, job_id=extra.get("job_id"),
    )
    if existing is not None:
        return existing

    bal = get_or_create_balance(db, user_id, role)
    new_balance = int(bal.balance) + int(amount)
    if new_balance < 0:
        raise InsufficientPoints(required=-int(amount), available=int(bal.balance))
    bal.balance = new_balance
    bal.updated_at = _utcnow()

    now = _utcnow()
    tx = PointTransaction(
        user_id=user_id,
        role=_role(role),
        type=type.value,
        amount=int(amount),
        balance_after=new_balance,
        status=status.value,
        description=description,
        idempotency_key=idempotency_key,
        created_at=now,
        completed_at=now if status == TransactionStatus.COMPLETED else None,
        **extra,
    )
    db.add(tx)
    db.flush()
    return tx


# ---------------------------------------------------------------------
# 충전 / 출금
# ---------------------------------------------------------------------
def charge_points(
    db: Session,
    user_id: int,
    role,
    amount: int,
    *,
    description: Optional[str] = None,
    admin_id: Optional[int] = None,
    idempotency_key: Optional[str] = None,
    auto_commit: bool = True,
) -> PointTransaction:
    amount = _require_positive(amount)
    existing = _replay(db, idempotency_key, user_id=user_id, role=role, type=TransactionType.CHARGE, amount=amount)
    if existing is not None:
        return existing

    tx = _apply(
        db, user_id=user_id, role=role, type=TransactionType.CHARGE, amount=amount,
        description=description or f"포인트 충전 {amount:,}P",
        idempotency_key=idempotency_key, admin_id=admin_id,
    )
    bal = get_or_create_balance(db, user_id, role)
    bal.total_charged = int(bal.total_charged) + amount
    if auto_commit:
        db.commit()
        db.refresh(tx)
    logger.info("charge user=%s role=%s amount=%s balance=%s", user_id, tx.role, amount, tx.balance_after)
    return tx


def request_withdrawal(
    db: Session,
    user_id: int,
    role,
    amount: int,
    *,
    bank_name: str,
    bank_account: str,
    account_holder: str,
) -> PointTransaction:
    """출금 요청 시점에 잔액을 차감하고 거래는 pending 으로 남긴다."""
    amount = _require_positive(amount)
    tx = _apply(
        db, user_id=user_id, role=role, type=TransactionType.WITHDRAW, amount=-amount,
        description=f"출금 요청 {amount:,}P",
        status=TransactionStatus.PENDING,
        bank_name=bank_name, bank_account=bank_account, account_holder=account_holder,
    )
    db.commit()
    db.refresh(tx)
    logger.info("withdrawal requested tx=%s user=%s amount=%s", tx.id, user_id, amount)
    return tx


def _require_pending_withdrawal(db: Session, transaction_id: int) -> PointTransaction:
    tx = db.get(PointTransaction, transaction_id)
    if not tx or tx.type != TransactionType.WITHDRAW.value:
        raise NotFoundError(f"Withdrawal not found: {transaction_id}")
    if tx.status != TransactionStatus.PENDING.value:
        raise ConflictError(f"withdrawal already processed: status={tx.status}")
    return tx


def approve_withdrawal(db: Session, transaction_id: int, admin_id: int, note: Optional[str] = None) -> PointTransaction:
    tx = _require_pending_withdrawal(db, transaction_id)
    tx.status = TransactionStatus.COMPLETED.value
    tx.completed_at = _utcnow()
    tx.admin_id = admin_id
    tx.admin_note = note
    bal = get_or_create_balance(db, tx.user_id, tx.role)
    bal.total_withdrawn = int(bal.total_withdrawn) + abs(int(tx.amount))
    db.commit()
    db.refresh(tx)
    N.create_notification(
        db, user_id=tx.user_id, title="출금 완료",
        message=f"{abs(tx.amount):,}P 출금이 완료되었습니다.", type="success",
    )
    logger.info("withdrawal approved tx=%s admin=%s", tx.id, admin_id)
    return tx


def reject_withdrawal(db: Session, transaction_id: int, admin_id: int, reason: str) -> PointTransaction:
    tx = _require_pending_withdrawal(db, transaction_id)
    tx.status = TransactionStatus.CANCELLED.value
    tx.admin_id = admin_id
    tx.admin_note = reason
    _apply(
        db, user_id=tx.user_id, role=tx.role, type=TransactionType.REFUND, amount=abs(int(tx.amount)),
        description=f"출금 거절 환불: {reason}",
        idempotency_key=f"withdraw-reject:{tx.id}",
        related_transaction_id=tx.id, admin_id=admin_id,
    )
    db.commit()
    db.refresh(tx)
    N.create_notification(
        db, user_id=tx.user_id, title="출금 거절",
        message=f"출금 요청이 거절되어 {abs(tx.amount):,}P 가 환불되었습니다. 사유: {reason}", type="warning",
    )
    logger.info("withdrawal rejected tx=%s admin=%s", tx.id, admin_id)
    return tx


def get_pending_withdrawals(db: Session) -> List[PointTransaction]:
    return (
        db.query(PointTransaction)
        .filter(
            PointTransaction.type == TransactionType.WITHDRAW.value,
            PointTransaction.status == TransactionStatus.PENDING.value,
        )
        .order_by(PointTransaction.created_at.asc(), PointTransaction.id.asc())
        .all()
    )


def get_transaction_history(db: Session, user_id: int, role=None, limit: int = 100) -> List[PointTransaction]:
    q = db.query(PointTransaction).filter(PointTransaction.user_id == user_id)
    if role is not None:
        q = q.filter(PointTransaction.role == _role(role))
    return q.order_by(PointTransaction.created_at.desc(), PointTransaction.id.desc()).limit(limit).all()


def deduct_points(
    db: Session,
    user_id: int,
    role,
    amount: int,
    *,
    deduction_type: str,
    description: str,
    job_id: Optional[str] = None,
    admin_id: Optional[int] = None,
    idempotency_key: Optional[str] = None,
    auto_commit: bool = True,
) -> PointTransaction:
    amount = _require_positive(amount)
    tx = _apply(
        db, user_id=user_id, role=role, type=TransactionType.DEDUCTION, amount=-amount,
        description=description, idempotency_key=idempotency_key,
        deduction_type=deduction_type, job_id=job_id, admin_id=admin_id,
    )
    if auto_commit:
        db.commit()
        db.refresh(tx)
    logger.info("deduction user=%s type=%s amount=%s", user_id, deduction_type, amount)
    return tx


# ---------------------------------------------------------------------
# 에스크로
# ---------------------------------------------------------------------
def get_escrow(db: Session, job_id: str) -> Optional[PointEscrow]:
    return db.query(PointEscrow).filter(PointEscrow.job_id == job_id).first()


def _require_escrow(db: Session, job_id: str) -> PointEscrow:
    escrow = get_escrow(db, job_id)
    if escrow is None:
        raise NotFoundError(f"Escrow not found for job: {job_id}")
    return escrow


def escrow_points(db: Session, job: models.Job, *, auto_commit: bool = True) -> PointEscrow:
    """판매자 포인트를 작업 금액만큼 차감하고 pending 에스크로를 만든다."""
    amount = _require_positive(job.escrow_amount)
    if get_escrow(db, job.id) is not None:
        raise ConflictError(f"escrow already exists for job: {job.id}")

    _apply(
        db, user_id=job.seller_id, role=PointRole.SELLER, type=TransactionType.ESCROW, amount=-amount,
        description=f"작업 {job.id} 에스크로 보관",
        idempotency_key=f"escrow:{job.id}", job_id=job.id,
    )
    escrow = PointEscrow(
        job_id=job.id,
        seller_id=job.seller_id,
        contractor_id=job.contractor_id,
        amount=amount,
        original_amount=amount,
        status=EscrowStatus.PENDING.value,
        created_at=_utcnow(),
    )
    db.add(escrow)
    db.flush()
    if auto_commit:
        db.commit()
        db.refresh(escrow)
    return escrow


def schedule_release(
    db: Session, job: models.Job, *, completed_at: Optional[datetime] = None, auto_commit: bool = True,
) -> PointEscrow:
    escrow = _require_escrow(db, job.id)
    hours = get_system_settings(db).escrow_auto_release_hours
    base = _as_utc(completed_at or job.completed_at) or _utcnow()
    escrow.release_due_at = base + timedelta(hours=int(hours))
    escrow.contractor_id = job.contractor_id
    if auto_commit:
        db.commit()
    logger.info("escrow release scheduled job=%s due=%s", job.id, escrow.release_due_at)
    return escrow


def _commission_rate_for(db: Session, contractor: Optional[models.User]) -> float:
    if contractor is not None and contractor.rating_count:
        return rating_policy.get_commission_rate_for_rating(db, float(contractor.rating))
    return float(get_system_settings(db).contractor_commission_rate)


def release_escrow(
    db: Session, job_id: str, *, admin_id: Optional[int] = None, auto_commit: bool = True,
) -> PointEscrow:
    """
    완료된 작업의 에스크로를 시공자에게 지급한다 (플랫폼 수수료 차감, 내림).
    disputed 에스크로는 관리자만 지급 가능.
    """
    job = db.get(models.Job, job_id)
    if not job:
        raise NotFoundError(f"Job not found: {job_id}")
    if job.status != JobStatus.COMPLETED.value:
        raise ConflictError(f"job is not completed: status={job.status}")
    if job.contractor_id is None:
        raise ConflictError("job has no contractor")

    escrow = _require_escrow(db, job_id)
    if escrow.status == EscrowStatus.DISPUTED.value and admin_id is None:
        raise ConflictError("disputed escrow can only be released by admin")
    if escrow.status not in _ESCROW_OPEN:
        raise ConflictError(f"escrow already settled: status={escrow.status}")

    contractor = db.get(models.User, job.contractor_id)
    rate = _commission_rate_for(db, contractor)
    held = int(escrow.amount)
    commission = int(math.floor(held * rate / 100))
    payout = held - commission

    _apply(
        db, user_id=job.contractor_id, role=PointRole.CONTRACTOR, type=TransactionType.RELEASE, amount=payout,
        description=f"작업 {job.id} 대금 지급 (수수료 {rate:g}% {commission:,}P 차감)",
        idempotency_key=f"release:{job.id}", job_id=job.id, admin_id=admin_id,
    )
    escrow.amount = 0
    escrow.status = EscrowStatus.RELEASED.value
    escrow.released_at = _utcnow()
    escrow.contractor_id = job.contractor_id
    if job.final_amount is None:
        job.final_amount = payout

    N.create_notification(
        db, user_id=job.contractor_id, title="작업 대금 지급",
        message=f"작업 {job.id} 대금 {payout:,}P 가 지급되었습니다.", type="success", auto_commit=False,
    )
    if auto_commit:
        db.commit()
        db.refresh(escrow)
    logger.info("escrow released job=%s payout=%s commission=%s", job.id, payout, commission)
    return escrow


def refund_escrow(
    db: Session, job_id: str, *, reason: str, auto_commit: bool = True,
) -> PointEscrow:
    """보관 중인 금액 전부를 판매자에게 돌려준다."""
    escrow = _require_escrow(db, job_id)
    if escrow.status not in _ESCROW_OPEN:
        raise ConflictError(f"escrow already settled: status={escrow.status}")

    held = int(escrow.amount)
    if held > 0:
        _apply(
            db, user_id=escrow.seller_id, role=PointRole.SELLER, type=TransactionType.REFUND, amount=held,
            description=f"작업 {job_id} 에스크로 환불: {reason}",
            idempotency_key=f"escrow-refund:{job_id}", job_id=job_id,
        )
    escrow.amount = 0
    escrow.status = EscrowStatus.REFUNDED.value
    escrow.refunded_at = _utcnow()
    escrow.notes = reason
    if auto_commit:
        db.commit()
        db.refresh(escrow)
    logger.info("escrow refunded job=%s amount=%s", job_id, held)
    return escrow


def pay_compensation_from_escrow(
    db: Session, job_id: str, amount: int, compensation_type: str, *, auto_commit: bool = True,
) -> Optional[PointTransaction]:
    """에스크로에서 amount 만큼 시공자에게 보상금으로 지급한다. 0 이면 거래 없음."""
    escrow = _require_escrow(db, job_id)
    if escrow.status not in _ESCROW_OPEN:
        raise ConflictError(f"escrow already settled: status={escrow.status}")
    amount = int(amount)
    if amount < 0 or amount > int(escrow.amount):
        raise PolicyViolation(f"보상금은 0~{escrow.amount} 사이여야 합니다. (입력값: {amount})")

    job = db.get(models.Job, job_id)
    if job is None or job.contractor_id is None:
        raise ConflictError("job has no contractor")

    tx = None
    if amount > 0:
        tx = _apply(
            db, user_id=job.contractor_id, role=PointRole.CONTRACTOR, type=TransactionType.COMPENSATION,
            amount=amount, description=f"작업 {job_id} 보상금",
            idempotency_key=f"compensation:{job_id}", job_id=job_id, compensation_type=compensation_type,
        )
        escrow.amount = int(escrow.amount) - amount
    if auto_commit:
        db.commit()
    return tx


def dispute_escrow(db: Session, job_id: str, admin_id: int, note: Optional[str] = None) -> PointEscrow:
    escrow = _require_escrow(db, job_id)
    if escrow.status != EscrowStatus.PENDING.value:
        raise ConflictError(f"only pending escrow can be disputed: status={escrow.status}")
    escrow.status = EscrowStatus.DISPUTED.value
    escrow.notes = note
    db.commit()
    db.refresh(escrow)
    logger.info("escrow disputed job=%s admin=%s", job_id, admin_id)
    return escrow


def release_due_escrows(db: Session, now: Optional[datetime] = None) -> int:
    """release_due_at 이 지난 pending 에스크로를 모두 지급한다. 지급 건수 반환."""
    now = _as_utc(now) or _utcnow()
    due = (
        db.query(PointEscrow)
        .filter(
            PointEscrow.status == EscrowStatus.PENDING.value,
            PointEscrow.release_due_at.isnot(None),
            PointEscrow.release_due_at <= now,
        )
        .order_by(PointEscrow.release_due_at.asc())
        .all()
    )
    released = 0
    for escrow in due:
        try:
            release_escrow(db, escrow.job_id, auto_commit=False)
            db.commit()
            released += 1
        except (ConflictError, NotFoundError) as e:
            db.rollback()
            logger.warning("auto release skipped job=%s: %s", escrow.job_id, e)
    return released
