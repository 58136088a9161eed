# insteam/logic/rating_policy.py
# 평점 기반 수수료율 / 신규 수락 정지 정책
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from insteam import models
from insteam.core.time_policy import _as_utc, _utcnow
from insteam.errors import NotFoundError, PolicyViolation
from insteam.policy.runtime import get_policy

logger = logging.getLogger(__name__)

PERMANENT = -1


def _contains(min_rating: float, max_rating: Optional[float], rating: float) -> bool:
    if rating < min_rating:
        return False
    return max_rating is None or rating < max_rating


def _validate_band(min_rating: float, max_rating: Optional[float]) -> None:
    if min_rating < 0 or min_rating > 5:
        raise PolicyViolation("min_rating 은 0~5 사이여야 합니다.")
    if max_rating is not None and max_rating <= min_rating:
        raise PolicyViolation("max_rating 은 min_rating 보다 커야 합니다.")


# ---------------------------------------------------------------------
# 기본 정책 시드
# ---------------------------------------------------------------------
def initialize_default_policies(db: Session, *, auto_commit: bool = True) -> None:
    """기존 정책을 모두 지우고 기본값으로 다시 만든다."""
    p = get_policy().rating
    db.query(models.RatingCommissionPolicy).delete(synchronize_session=False)
    db.query(models.RatingSuspensionPolicy).delete(synchronize_session=False)
    for b in p.commission_bands:
        db.add(models.RatingCommissionPolicy(
            min_rating=b.min_rating, max_rating=b.max_rating,
            commission_rate=b.value, description=b.description, is_active=True,
        ))
    for b in p.suspension_bands:
        db.add(models.RatingSuspensionPolicy(
            min_rating=b.min_rating, max_rating=b.max_rating,
            suspension_days=int(b.value), description=b.description, is_active=True,
        ))
    if auto_commit:
        db.commit()
    else:
        db.flush()
    logger.info("rating policies reset to defaults")


def _ensure_defaults(db: Session) -> None:
    has_any = (
        db.query(models.RatingCommissionPolicy.id).first() is not None
        or db.query(models.RatingSuspensionPolicy.id).first() is not None
    )
    if not has_any:
        initialize_default_policies(db, auto_commit=False)


# ---------------------------------------------------------------------
# 수수료율 정책 CRUD
# ---------------------------------------------------------------------
def get_commission_policies(db: Session) -> List[models.RatingCommissionPolicy]:
    _ensure_defaults(db)
    return (
        db.query(models.RatingCommissionPolicy)
        .order_by(models.RatingCommissionPolicy.min_rating.desc())
        .all()
    )


def create_commission_policy(
    db: Session, *, min_rating: float, max_rating: Optional[float], commission_rate: float,
    description: Optional[str] = None, is_active: bool = True,
) -> models.RatingCommissionPolicy:
    _validate_band(min_rating, max_rating)
    if not (0 <= commission_rate <= 100):
        raise PolicyViolation("commission_rate 는 0~100 사이여야 합니다.")
    row = models.RatingCommissionPolicy(
        min_rating=min_rating, max_rating=max_rating, commission_rate=commission_rate,
        description=description, is_active=is_active,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_commission_policy(db: Session, policy_id: int, **fields) -> models.RatingCommissionPolicy:
    row = db.get(models.RatingCommissionPolicy, policy_id)
    if not row:
        raise NotFoundError(f"RatingCommissionPolicy not found: {policy_id}")
    # 검증을 모두 통과한 뒤에만 행을 수정
    _validate_band(fields.get("min_rating", row.min_rating), fields.get("max_rating", row.max_rating))
    rate = fields.get("commission_rate", row.commission_rate)
    if rate is None or not (0 <= rate <= 100):
        raise PolicyViolation("commission_rate 는 0~100 사이여야 합니다.")
    for k, v in fields.items():
        setattr(row, k, v)
    db.commit()
    db.refresh(row)
    return row


def delete_commission_policy(db: Session, policy_id: int) -> None:
    row = db.get(models.RatingCommissionPolicy, policy_id)
    if not row:
        raise NotFoundError(f"RatingCommissionPolicy not found: {policy_id}")
    db.delete(row)
    db.commit()


# ---------------------------------------------------------------------
# 정지 정책 CRUD
# ---------------------------------------------------------------------
def get_suspension_policies(db: Session) -> List[models.RatingSuspensionPolicy]:
    _ensure_defaults(db)
    return (
        db.query(models.RatingSuspensionPolicy)
        .order_by(models.RatingSuspensionPolicy.min_rating.desc())
        .all()
    )


def create_suspension_policy(
    db: Session, *, min_rating: float, max_rating: Optional[float], suspension_days: int,
    description: Optional[str] = None, is_active: bool = True,
) -> models.RatingSuspensionPolicy:
    _validate_band(min_rating, max_rating)
    if suspension_days < PERMANENT:
        raise PolicyViolation("suspension_days 는 -1(영구) 이상이어야 합니다.")
    row = models.RatingSuspensionPolicy(
        min_rating=min_rating, max_rating=max_rating, suspension_days=suspension_days,
        description=description, is_active=is_active,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_suspension_policy(db: Session, policy_id: int, **fields) -> models.RatingSuspensionPolicy:
    row = db.get(models.RatingSuspensionPolicy, policy_id)
    if not row:
        raise NotFoundError(f"RatingSuspensionPolicy not found: {policy_id}")
    _validate_band(fields.get("min_rating", row.min_rating), fields.get("max_rating", row.max_rating))
    days = fields.get("suspension_days", row.suspension_days)
    if days is None or days < PERMANENT:
        raise PolicyViolation("suspension_days 는 -1(영구) 이상이어야 합니다.")
    for k, v in fields.items():
        setattr(row, k, v)
    db.commit()
    db.refresh(row)
    return row


def delete_suspension_policy(db: Session, policy_id: int) -> None:
    row = db.get(models.RatingSuspensionPolicy, policy_id)
    if not row:
        raise NotFoundError(f"RatingSuspensionPolicy not found: {policy_id}")
    db.delete(row)
    db.commit()


# ---------------------------------------------------------------------
# 조회: 평점 → 수수료율 / 정지 일수
# ---------------------------------------------------------------------
def get_commission_rate_for_rating(db: Session, rating: float) -> float:
    for row in get_commission_policies(db):
        if row.is_active and _contains(row.min_rating, row.max_rating, rating):
            return float(row.commission_rate)
    return float(get_policy().rating.default_commission_rate)


def get_suspension_days_for_rating(db: Session, rating: float) -> int:
    for row in get_suspension_policies(db):
        if row.is_active and _contains(row.min_rating, row.max_rating, rating):
            return int(row.suspension_days)
    return 0


def is_suspended(contractor: models.User, now: Optional[datetime] = None) -> bool:
    if contractor.permanently_suspended:
        return True
    until = _as_utc(contractor.suspended_until)
    if until is None:
        return False
    return until > (_as_utc(now) or _utcnow())


def apply_suspension(
    db: Session, contractor: models.User, *, now: Optional[datetime] = None, auto_commit: bool = True,
) -> int:
    """
    현재 평점에 맞는 정지 정책을 적용하고 적용된 일수를 반환 (-1 = 영구, 0 = 없음).
    이미 더 긴 정지가 걸려 있으면 줄이지 않는다.
    """
    if not contractor.rating_count:
        return 0
    days = get_suspension_days_for_rating(db, float(contractor.rating))
    if days == PERMANENT:
        contractor.permanently_suspended = True
        logger.warning("contractor %s permanently suspended (rating=%.2f)", contractor.id, contractor.rating)
    elif days > 0:
        until = (_as_utc(now) or _utcnow()) + timedelta(days=days)
        current = _as_utc(contractor.suspended_until)
        if current is None or current < until:
            contractor.suspended_until = until
        logger.info("contractor %s suspended %s days (rating=%.2f)", contractor.id, days, contractor.rating)
    if auto_commit:
        db.commit()
    return days
