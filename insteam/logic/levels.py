# insteam/logic/levels.py
# 시공자 등급 (완료 건수 기준)
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from insteam import models
from insteam.errors import ConflictError, NotFoundError, PolicyViolation
from insteam.policy.runtime import get_policy

logger = logging.getLogger(__name__)

DEFAULT_LEVEL = 1


def create_default_levels(db: Session) -> List[models.ContractorLevel]:
    """기본 등급이 없을 때만 만든다 (여러 번 호출해도 안전)."""
    existing = {row.level for row in db.query(models.ContractorLevel).all()}
    for rule in get_policy().levels:
        if rule.level in existing:
            continue
        db.add(models.ContractorLevel(
            level=rule.level,
            name=rule.name,
            completed_jobs_count=rule.completed_jobs_count,
            benefits=list(rule.benefits),
            is_active=True,
        ))
    db.commit()
    return get_all_levels(db)


def get_all_levels(db: Session) -> List[models.ContractorLevel]:
    return db.query(models.ContractorLevel).order_by(models.ContractorLevel.level.asc()).all()


def get_level(db: Session, level_id: int) -> models.ContractorLevel:
    row = db.get(models.ContractorLevel, level_id)
    if not row:
        raise NotFoundError(f"ContractorLevel not found: {level_id}")
    return row


def create_level(
    db: Session, *, level: int, name: str, completed_jobs_count: int,
    benefits: Optional[List[str]] = None, is_active: bool = True,
) -> models.ContractorLevel:
    if completed_jobs_count < 0:
        raise PolicyViolation("completed_jobs_count 는 0 이상이어야 합니다.")
    if db.query(models.ContractorLevel.id).filter(models.ContractorLevel.level == level).first():
        raise ConflictError(f"level already exists: {level}")
    row = models.ContractorLevel(
        level=level, name=name, completed_jobs_count=completed_jobs_count,
        benefits=list(benefits or []), is_active=is_active,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_level(db: Session, level_id: int, **fields) -> models.ContractorLevel:
    row = get_level(db, level_id)
    if fields.get("completed_jobs_count") is not None and fields["completed_jobs_count"] < 0:
        raise PolicyViolation("completed_jobs_count 는 0 이상이어야 합니다.")
    for k, v in fields.items():
        if k == "benefits" and v is not None:
            v = list(v)
        setattr(row, k, v)
    db.commit()
    db.refresh(row)
    return row


def delete_level(db: Session, level_id: int) -> None:
    row = get_level(db, level_id)
    db.delete(row)
    db.commit()


def level_for_completed_jobs(db: Session, completed_jobs: int) -> int:
    row = (
        db.query(models.ContractorLevel)
        .filter(
            models.ContractorLevel.is_active.is_(True),
            models.ContractorLevel.completed_jobs_count <= completed_jobs,
        )
        .order_by(models.ContractorLevel.completed_jobs_count.desc(), models.ContractorLevel.level.desc())
        .first()
    )
    if row is not None:
        return int(row.level)

    # DB 에 등급이 하나도 없으면 기본 정책으로 판정
    if db.query(models.ContractorLevel.id).first() is None:
        best = DEFAULT_LEVEL
        for rule in sorted(get_policy().levels, key=lambda r: r.completed_jobs_count):
            if rule.completed_jobs_count <= completed_jobs:
                best = rule.level
        return best
    return DEFAULT_LEVEL


def level_name(db: Session, level: int) -> str:
    row = db.query(models.ContractorLevel).filter(models.ContractorLevel.level == level).first()
    if row is not None:
        return row.name
    for rule in get_policy().levels:
        if rule.level == level:
            return rule.name
    return f"Lv.{level}"


def recompute_contractor_level(db: Session, contractor: models.User) -> Tuple[int, int]:
    """(이전 등급, 새 등급) 반환. commit 은 호출자 책임."""
    old = int(contractor.level or DEFAULT_LEVEL)
    new = level_for_completed_jobs(db, int(contractor.completed_jobs or 0))
    if new != old:
        contractor.level = new
        logger.info("contractor %s level %s -> %s", contractor.id, old, new)
    return old, new
