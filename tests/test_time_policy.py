# tests/test_time_policy.py
from datetime import datetime, timedelta, timezone

from insteam.core.time_policy import (
    KST,
    _as_utc,
    _utcnow,
    hours_between,
    kst_day_bounds,
    set_now_utc_for_testing,
)


def test_kst_day_bounds_crosses_utc_date():
    # 2025-03-10 23:30 UTC == 2025-03-11 08:30 KST
    now = datetime(2025, 3, 10, 23, 30, tzinfo=timezone.utc)
    start, end = kst_day_bounds(now)
    assert start == datetime(2025, 3, 10, 15, 0, tzinfo=timezone.utc)
    assert end - start == timedelta(days=1)
    assert start.astimezone(KST).hour == 0


def test_naive_datetimes_are_treated_as_utc():
    naive = datetime(2025, 1, 1, 12, 0)
    assert _as_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert _as_utc(None) is None


def test_clock_override():
    fixed = datetime(2025, 5, 1, 9, 0)
    set_now_utc_for_testing(fixed)
    assert _utcnow() == fixed.replace(tzinfo=timezone.utc)
    set_now_utc_for_testing(None)
    assert _utcnow() != fixed.replace(tzinfo=timezone.utc)


def test_hours_between():
    a = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
    assert hours_between(a, a + timedelta(hours=25, minutes=30)) == 25.5
