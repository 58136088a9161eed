# insteam/logic/system_settings.py
# 관리자 조정 가능한 런타임 정책 (단일 행). 최초 조회 시 YAML 기본값으로 시드 (flush 만, 커밋은 호출 측).
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from insteam import models
from insteam.core.time_policy import _utcnow
from insteam.errors import PolicyViolation
from insteam.policy import guardrails as G
from insteam.policy.runtime import get_policy

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


def _check(name: str, value: float, bounds: tuple) -> None:
    lo, hi = bounds
    if value is None or not (lo <= value <= hi):
        raise PolicyViolation(f"{name} 은(는) {lo}~{hi} 사이여야 합니다. (입력값: {value})")


def get_system_settings(db: Session) -> models.SystemSettings:
    row = db.get(models.SystemSettings, SETTINGS_ROW_ID)
    if row is not None:
        return row

    p = get_policy()
    row = models.SystemSettings(
        id=SETTINGS_ROW_ID,
        escrow_auto_release_hours=p.escrow.auto_release_hours,
        max_cancellation_hours=p.cancellation.max_cancellation_hours,
        max_daily_cancellations=p.cancellation.max_daily_cancellations,
        cancellation_fee_rate=p.cancellation.cancellation_fee_rate,
        product_not_ready_rate=p.compensation.product_not_ready_rate,
        customer_absent_rate=p.compensation.customer_absent_rate,
        schedule_change_fee_rate=p.compensation.schedule_change_fee_rate,
        seller_commission_rate=p.fees.seller_commission_rate,
        contractor_commission_rate=p.fees.contractor_commission_rate,
        travel_fee=p.pricing.travel_fee,
        updated_at=_utcnow(),
    )
    db.add(row)
    db.flush()  # 커밋은 호출 측 트랜잭션에서
    logger.info("system settings seeded from policy defaults")
    return row


def _touch(row: models.SystemSettings, admin_id: Optional[int]) -> None:
    row.updated_by = admin_id
    row.updated_at = _utcnow()


def update_escrow_auto_release_hours(db: Session, hours: int, admin_id: Optional[int]) -> models.SystemSettings:
    _check("에스크로 자동 지급 시간", hours, G.ESCROW_HOURS_RANGE)
    row = get_system_settings(db)
    row.escrow_auto_release_hours = int(hours)
    _touch(row, admin_id)
    db.commit()
    db.refresh(row)
    logger.info("escrow auto release hours -> %s (admin=%s)", hours, admin_id)
    return row


def update_cancellation_policy(
    db: Session,
    max_cancellation_hours: int,
    max_daily_cancellations: int,
    cancellation_fee_rate: float,
    admin_id: Optional[int],
) -> models.SystemSettings:
    _check("취소 가능 시간", max_cancellation_hours, G.CANCEL_HOURS_RANGE)
    _check("일일 최대 취소 횟수", max_daily_cancellations, G.DAILY_CANCELS_RANGE)
    _check("취소 수수료율", cancellation_fee_rate, G.CANCEL_FEE_RANGE)
    row = get_system_settings(db)
    row.max_cancellation_hours = int(max_cancellation_hours)
    row.max_daily_cancellations = int(max_daily_cancellations)
    row.cancellation_fee_rate = float(cancellation_fee_rate)
    _touch(row, admin_id)
    db.commit()
    db.refresh(row)
    logger.info(
        "cancellation policy -> hours=%s daily=%s fee=%s%% (admin=%s)",
        max_cancellation_hours, max_daily_cancellations, cancellation_fee_rate, admin_id,
    )
    return row


def update_compensation_policy(
    db: Session,
    product_not_ready_rate: float,
    customer_absent_rate: float,
    schedule_change_fee_rate: float,
    admin_id: Optional[int],
) -> models.SystemSettings:
    _check("제품 미준비 보상률", product_not_ready_rate, G.COMPENSATION_RATE_RANGE)
    _check("고객 부재 보상률", customer_absent_rate, G.COMPENSATION_RATE_RANGE)
    _check("일정 변경 수수료율", schedule_change_fee_rate, G.SCHEDULE_FEE_RANGE)
    row = get_system_settings(db)
    row.product_not_ready_rate = float(product_not_ready_rate)
    row.customer_absent_rate = float(customer_absent_rate)
    row.schedule_change_fee_rate = float(schedule_change_fee_rate)
    _touch(row, admin_id)
    db.commit()
    db.refresh(row)
    return row


def update_fee_settings(
    db: Session,
    seller_commission_rate: float,
    contractor_commission_rate: float,
    admin_id: Optional[int],
) -> models.SystemSettings:
    _check("판매자 수수료율", seller_commission_rate, G.COMMISSION_RANGE)
    _check("시공자 수수료율", contractor_commission_rate, G.COMMISSION_RANGE)
    row = get_system_settings(db)
    row.seller_commission_rate = float(seller_commission_rate)
    row.contractor_commission_rate = float(contractor_commission_rate)
    _touch(row, admin_id)
    db.commit()
    db.refresh(row)
    return row
