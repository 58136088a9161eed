# insteam/logic/pricing.py
# 출장비 / 긴급 할증
from __future__ import annotations

import math
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from insteam import models
from insteam.core.time_policy import _as_utc, _utcnow, hours_between
from insteam.errors import ConflictError, NotFoundError, PolicyViolation
from insteam.logic.system_settings import get_system_settings
from insteam.policy.runtime import get_policy


def _ensure_emergency_defaults(db: Session) -> None:
    if db.query(models.EmergencySetting.id).first() is not None:
        return
    for b in get_policy().pricing.emergency:
        db.add(models.EmergencySetting(
            hours_within=b.hours_within, additional_percentage=b.additional_percentage, is_active=True,
        ))
    db.flush()


def get_emergency_settings(db: Session) -> List[models.EmergencySetting]:
    _ensure_emergency_defaults(db)
    return db.query(models.EmergencySetting).order_by(models.EmergencySetting.hours_within.asc()).all()


def create_emergency_setting(
    db: Session, *, hours_within: int, additional_percentage: float, is_active: bool = True,
) -> models.EmergencySetting:
    if hours_within <= 0:
        raise PolicyViolation("hours_within 은 0보다 커야 합니다.")
    if not (0 <= additional_percentage <= 100):
        raise PolicyViolation("additional_percentage 는 0~100 사이여야 합니다.")
    _ensure_emergency_defaults(db)
    if db.query(models.EmergencySetting.id).filter(models.EmergencySetting.hours_within == hours_within).first():
        raise ConflictError(f"emergency setting already exists: {hours_within}h")
    row = models.EmergencySetting(
        hours_within=hours_within, additional_percentage=additional_percentage, is_active=is_active,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def update_emergency_setting(db: Session, setting_id: int, **fields) -> models.EmergencySetting:
    row = db.get(models.EmergencySetting, setting_id)
    if not row:
        raise NotFoundError(f"EmergencySetting not found: {setting_id}")
    pct = fields.get("additional_percentage")
    if pct is not None and not (0 <= pct <= 100):
        raise PolicyViolation("additional_percentage 는 0~100 사이여야 합니다.")
    for k, v in fields.items():
        setattr(row, k, v)
    db.commit()
    db.refresh(row)
    return row


def delete_emergency_setting(db: Session, setting_id: int) -> None:
    row = db.get(models.EmergencySetting, setting_id)
    if not row:
        raise NotFoundError(f"EmergencySetting not found: {setting_id}")
    db.delete(row)
    db.commit()


def urgent_surcharge(
    db: Session, total: int, scheduled_at: Optional[datetime], now: Optional[datetime] = None,
) -> Tuple[int, float]:
    """
    (할증 금액, 적용 퍼센트). 남은 시간이 들어가는 구간 중 hours_within 이 가장 작은 것을 적용.
    금액은 surcharge_unit(기본 500) 단위 반올림. 일정이 지났거나 해당 구간이 없으면 (0, 0).
    """
    if scheduled_at is None or total <= 0:
        return 0, 0.0
    hours_until = hours_between(_as_utc(now) or _utcnow(), scheduled_at)
    if hours_until < 0:
        return 0, 0.0

    matches = [
        s for s in get_emergency_settings(db)
        if s.is_active and hours_until <= s.hours_within
    ]
    if not matches:
        return 0, 0.0
    best = min(matches, key=lambda s: s.hours_within)
    pct = float(best.additional_percentage)
    unit = get_policy().pricing.surcharge_unit
    # 0.5 는 올림 (은행가 반올림 아님)
    fee = int(math.floor(total * pct / 100 / unit + 0.5)) * unit
    return fee, pct


def calculate_urgent_fee(
    db: Session, total: int, scheduled_at: Optional[datetime], now: Optional[datetime] = None,
) -> int:
    return urgent_surcharge(db, total, scheduled_at, now)[0]


def get_travel_fee(db: Session) -> int:
    return int(get_system_settings(db).travel_fee or 0)


def set_travel_fee(db: Session, fee: int, admin_id: Optional[int] = None) -> int:
    if fee is None or int(fee) < 0:
        raise PolicyViolation("출장비는 0 이상이어야 합니다.")
    row = get_system_settings(db)
    row.travel_fee = int(fee)
    row.updated_by = admin_id
    row.updated_at = _utcnow()
    db.commit()
    return int(row.travel_fee)
