# tests/test_pricing.py
from datetime import datetime, timedelta, timezone

import pytest

from insteam import crud, schemas
from insteam.errors import PolicyViolation
from insteam.logic import points, pricing

NOW = datetime(2025, 4, 1, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("hours, pct", [(10, 50), (12, 50), (20, 30), (30, 20), (47.9, 20), (60, 0)])
def test_bucket_selection(db, hours, pct):
    fee, got = pricing.urgent_surcharge(db, 100000, NOW + timedelta(hours=hours), now=NOW)
    assert got == pct
    assert fee == 100000 * pct // 100


def test_surcharge_rounds_half_up_to_unit(db):
    # 6250 * 20% = 1250 → 500 단위 반올림 → 1500
    assert pricing.calculate_urgent_fee(db, 6250, NOW + timedelta(hours=30), now=NOW) == 1500
    # 12345 * 20% = 2469 → 2500
    assert pricing.calculate_urgent_fee(db, 12345, NOW + timedelta(hours=30), now=NOW) == 2500


def test_past_or_missing_schedule_has_no_surcharge(db):
    assert pricing.urgent_surcharge(db, 50000, NOW - timedelta(hours=1), now=NOW) == (0, 0.0)
    assert pricing.urgent_surcharge(db, 50000, None, now=NOW) == (0, 0.0)


def test_inactive_bucket_ignored(db):
    rows = {r.hours_within: r for r in pricing.get_emergency_settings(db)}
    pricing.update_emergency_setting(db, rows[12].id, is_active=False)
    _, pct = pricing.urgent_surcharge(db, 10000, NOW + timedelta(hours=5), now=NOW)
    assert pct == 30


def test_emergency_setting_validation(db):
    with pytest.raises(PolicyViolation):
        pricing.create_emergency_setting(db, hours_within=0, additional_percentage=10)
    row = pricing.create_emergency_setting(db, hours_within=6, additional_percentage=80)
    _, pct = pricing.urgent_surcharge(db, 10000, NOW + timedelta(hours=5), now=NOW)
    assert pct == 80
    pricing.delete_emergency_setting(db, row.id)


def test_travel_fee(db, admin):
    assert pricing.get_travel_fee(db) == 0
    assert pricing.set_travel_fee(db, 15000, admin.id) == 15000
    with pytest.raises(PolicyViolation):
        pricing.set_travel_fee(db, -1, admin.id)


def test_create_job_prices_items_travel_and_urgent(db, seller, admin):
    pricing.set_travel_fee(db, 10000, admin.id)
    points.charge_points(db, seller.id, "seller", 200000)
    payload = schemas.JobCreate(
        title="긴급 커튼 설치",
        address="부산시",
        scheduled_at=NOW + timedelta(hours=10),
        items=[schemas.JobItemIn(name="커튼", quantity=2, unit_price=30000)],
    )
    job = crud.create_job(db, seller, payload, now=NOW)
    assert job.travel_fee == 10000
    assert job.urgent_fee == 30000  # 60000 * 50%
    assert job.urgent_fee_percent == 50
    assert job.escrow_amount == 100000
    assert points.get_balance(db, seller.id, "seller").balance == 100000
    assert [i.total_price for i in job.items] == [60000]


def test_zero_amount_job_rejected(db, seller):
    with pytest.raises(PolicyViolation):
        crud.create_job(db, seller, schemas.JobCreate(title="t", address="a"))
