# insteam/policy/loader.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, List

import yaml

from insteam.policy.guardrails import validate_policy
from insteam.policy.errors import PolicyConfigError, PolicyConfigValidationError
from insteam.policy.schema import (
    CancellationPolicy,
    CompensationPolicy,
    EmergencyBucket,
    EscrowPolicy,
    FeePolicy,
    LevelRule,
    PolicyBundle,
    PricingPolicy,
    RatingBand,
    RatingPolicy,
)


def _deep_get(d: dict, key: str) -> Any:
    if not isinstance(d, dict) or key not in d:
        raise PolicyConfigValidationError(f"Missing key: {key}")
    return d[key]


def _opt_float(v: Any) -> float | None:
    return float(v) if v is not None else None


def _bands(items: Any, value_key: str) -> List[RatingBand]:
    out: List[RatingBand] = []
    if not isinstance(items, list):
        return out
    for it in items:
        if not isinstance(it, dict):
            continue
        out.append(
            RatingBand(
                min_rating=float(it.get("min_rating") or 0),
                max_rating=_opt_float(it.get("max_rating")),
                value=float(_deep_get(it, value_key)),
                description=str(it.get("description") or ""),
            )
        )
    return out


def load_policy_yaml(path: str | None = None) -> PolicyBundle:
    """
    Loads policy bundle from YAML.
    - default: insteam/policy/defaults.yaml
    - override path by env INSTEAM_POLICY_YAML or param
    """
    if path is None:
        path = os.environ.get("INSTEAM_POLICY_YAML")

    if path is None:
        path = str(Path(__file__).resolve().parent / "defaults.yaml")

    p = Path(path)
    if not p.exists():
        raise PolicyConfigError(f"Policy YAML not found: {p}")

    raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}

    escrow_raw = _deep_get(raw, "escrow")
    cancel_raw = _deep_get(raw, "cancellation")
    comp_raw = _deep_get(raw, "compensation")
    fees_raw = _deep_get(raw, "fees")

    levels: List[LevelRule] = []
    for it in raw.get("levels") or []:
        if not isinstance(it, dict):
            continue
        levels.append(
            LevelRule(
                level=int(_deep_get(it, "level")),
                name=str(it.get("name") or "").strip(),
                completed_jobs_count=int(it.get("completed_jobs_count") or 0),
                benefits=tuple(str(b) for b in (it.get("benefits") or [])),
            )
        )

    commission_raw = raw.get("rating_commission") or {}
    suspension_raw = raw.get("rating_suspension") or {}
    pricing_raw = raw.get("pricing") or {}

    bundle = PolicyBundle(
        escrow=EscrowPolicy(
            auto_release_hours=int(_deep_get(escrow_raw, "auto_release_hours")),
        ),
        cancellation=CancellationPolicy(
            max_cancellation_hours=int(_deep_get(cancel_raw, "max_cancellation_hours")),
            max_daily_cancellations=int(_deep_get(cancel_raw, "max_daily_cancellations")),
            cancellation_fee_rate=float(_deep_get(cancel_raw, "cancellation_fee_rate")),
        ),
        compensation=CompensationPolicy(
            product_not_ready_rate=float(_deep_get(comp_raw, "product_not_ready_rate")),
            customer_absent_rate=float(_deep_get(comp_raw, "customer_absent_rate")),
            schedule_change_fee_rate=float(_deep_get(comp_raw, "schedule_change_fee_rate")),
        ),
        fees=FeePolicy(
            seller_commission_rate=float(_deep_get(fees_raw, "seller_commission_rate")),
            contractor_commission_rate=float(_deep_get(fees_raw, "contractor_commission_rate")),
        ),
        levels=levels,
        rating=RatingPolicy(
            default_commission_rate=float(commission_raw.get("default_rate", 3)),
            commission_bands=_bands(commission_raw.get("bands"), "commission_rate"),
            suspension_bands=_bands(suspension_raw.get("bands"), "suspension_days"),
        ),
        pricing=PricingPolicy(
            travel_fee=int(pricing_raw.get("travel_fee") or 0),
            surcharge_unit=int(pricing_raw.get("surcharge_unit") or 500),
            emergency=[
                EmergencyBucket(
                    hours_within=int(_deep_get(b, "hours_within")),
                    additional_percentage=float(_deep_get(b, "additional_percentage")),
                )
                for b in (pricing_raw.get("emergency") or [])
                if isinstance(b, dict)
            ],
        ),
    )

    validate_policy(bundle)
    return bundle
