# insteam/policy/guardrails.py
from __future__ import annotations

from insteam.policy.errors import PolicyConfigValidationError
from insteam.policy.schema import PolicyBundle

# (name, min, max): 관리자 화면의 입력 범위와 동일
ESCROW_HOURS_RANGE = (1, 168)
CANCEL_HOURS_RANGE = (1, 168)
DAILY_CANCELS_RANGE = (1, 10)
CANCEL_FEE_RANGE = (0, 50)
COMPENSATION_RATE_RANGE = (0, 100)
SCHEDULE_FEE_RANGE = (0, 50)
COMMISSION_RANGE = (0, 50)


def check_range(name: str, value: float, bounds: tuple) -> None:
    lo, hi = bounds
    if not (lo <= value <= hi):
        raise PolicyConfigValidationError(f"{name} must be {lo}~{hi}, got={value}")


def validate_policy(bundle: PolicyBundle) -> None:
    check_range("escrow.auto_release_hours", bundle.escrow.auto_release_hours, ESCROW_HOURS_RANGE)

    c = bundle.cancellation
    check_range("cancellation.max_cancellation_hours", c.max_cancellation_hours, CANCEL_HOURS_RANGE)
    check_range("cancellation.max_daily_cancellations", c.max_daily_cancellations, DAILY_CANCELS_RANGE)
    check_range("cancellation.cancellation_fee_rate", c.cancellation_fee_rate, CANCEL_FEE_RANGE)

    comp = bundle.compensation
    check_range("compensation.product_not_ready_rate", comp.product_not_ready_rate, COMPENSATION_RATE_RANGE)
    check_range("compensation.customer_absent_rate", comp.customer_absent_rate, COMPENSATION_RATE_RANGE)
    check_range("compensation.schedule_change_fee_rate", comp.schedule_change_fee_rate, SCHEDULE_FEE_RANGE)

    check_range("fees.seller_commission_rate", bundle.fees.seller_commission_rate, COMMISSION_RANGE)
    check_range("fees.contractor_commission_rate", bundle.fees.contractor_commission_rate, COMMISSION_RANGE)

    # --- levels ---
    seen = set()
    for rule in bundle.levels:
        if rule.level in seen:
            raise PolicyConfigValidationError(f"duplicate level: {rule.level}")
        seen.add(rule.level)
        if rule.completed_jobs_count < 0:
            raise PolicyConfigValidationError(f"level {rule.level} threshold must be >= 0")

    # --- rating bands ---
    for band in bundle.rating.commission_bands:
        check_range("rating_commission.commission_rate", band.value, COMMISSION_RANGE)
        if band.max_rating is not None and band.max_rating <= band.min_rating:
            raise PolicyConfigValidationError(f"empty rating band: {band}")
    for band in bundle.rating.suspension_bands:
        if band.value < -1:
            raise PolicyConfigValidationError(f"suspension_days must be >= -1, got={band.value}")

    # --- pricing ---
    if bundle.pricing.travel_fee < 0:
        raise PolicyConfigValidationError(f"pricing.travel_fee must be >= 0, got={bundle.pricing.travel_fee}")
    if bundle.pricing.surcharge_unit <= 0:
        raise PolicyConfigValidationError("pricing.surcharge_unit must be > 0")
    for b in bundle.pricing.emergency:
        if b.hours_within <= 0 or not (0 <= b.additional_percentage <= 100):
            raise PolicyConfigValidationError(f"invalid emergency bucket: {b}")
