# tests/test_rating_levels.py
from datetime import datetime, timedelta, timezone

import pytest

from insteam import crud
from insteam.errors import ConflictError, PermissionDenied, PolicyViolation
from insteam.logic import levels, notifications, rating_policy

NOW = datetime(2025, 6, 1, 3, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("rating, rate", [(5.0, 0), (4.5, 0), (4.49, 3), (3.5, 3), (3.4, 5), (0.5, 5)])
def test_commission_rate_by_rating(db, rating, rate):
    assert rating_policy.get_commission_rate_for_rating(db, rating) == rate


@pytest.mark.parametrize("rating, days", [(4.0, 0), (3.2, 2), (2.9, 5), (2.2, 7), (1.7, 14), (1.0, -1)])
def test_suspension_days_by_rating(db, rating, days):
    assert rating_policy.get_suspension_days_for_rating(db, rating) == days


def test_commission_falls_back_to_default_when_no_band(db):
    for row in rating_policy.get_commission_policies(db):
        rating_policy.delete_commission_policy(db, row.id)
    # 수수료 정책이 비어도 정지 정책이 남아 있으면 재시드하지 않는다
    assert rating_policy.get_commission_rate_for_rating(db, 4.9) == 3


def test_reset_policies(db):
    assert len(rating_policy.get_commission_policies(db)) == 3
    rating_policy.create_commission_policy(db, min_rating=4.9, max_rating=None, commission_rate=1)
    assert len(rating_policy.get_commission_policies(db)) == 4
    rating_policy.initialize_default_policies(db)
    assert len(rating_policy.get_commission_policies(db)) == 3
    assert len(rating_policy.get_suspension_policies(db)) == 5


def test_invalid_band_rejected(db):
    with pytest.raises(PolicyViolation):
        rating_policy.create_commission_policy(db, min_rating=4.0, max_rating=3.0, commission_rate=1)
    with pytest.raises(PolicyViolation):
        rating_policy.create_suspension_policy(db, min_rating=1.0, max_rating=2.0, suspension_days=-5)


@pytest.mark.parametrize("rate", [-1, 100.5, 150])
def test_update_commission_rate_range(db, rate):
    row = rating_policy.get_commission_policies(db)[0]
    before = row.commission_rate
    with pytest.raises(PolicyViolation):
        rating_policy.update_commission_policy(db, row.id, commission_rate=rate)
    db.refresh(row)
    assert row.commission_rate == before

    updated = rating_policy.update_commission_policy(db, row.id, commission_rate=100)
    assert updated.commission_rate == 100


def test_update_suspension_days_below_permanent_rejected(db):
    row = rating_policy.get_suspension_policies(db)[0]
    with pytest.raises(PolicyViolation):
        rating_policy.update_suspension_policy(db, row.id, suspension_days=-5)


def test_suspension_blocks_accepting(db, seller, make_user, make_job):
    c = make_user("contractor", rating=2.2, rating_count=4)
    assert rating_policy.apply_suspension(db, c, now=NOW) == 7
    assert rating_policy.is_suspended(c, NOW + timedelta(days=6))
    assert not rating_policy.is_suspended(c, NOW + timedelta(days=8))

    job = make_job(seller)
    with pytest.raises(PermissionDenied):
        crud.accept_job(db, job.id, c, now=NOW + timedelta(days=1))
    assert crud.accept_job(db, job.id, c, now=NOW + timedelta(days=8)).status == "assigned"


def test_suspension_never_shortened(db, make_user):
    c = make_user("contractor", rating=1.7, rating_count=3)
    rating_policy.apply_suspension(db, c, now=NOW)
    long_until = c.suspended_until
    c.rating = 3.2
    rating_policy.apply_suspension(db, c, now=NOW)
    assert c.suspended_until == long_until


def test_permanent_suspension(db, make_user):
    c = make_user("contractor", rating=1.0, rating_count=2)
    assert rating_policy.apply_suspension(db, c, now=NOW) == rating_policy.PERMANENT
    assert c.permanently_suspended
    assert rating_policy.is_suspended(c, NOW + timedelta(days=3650))


def test_unrated_contractor_not_suspended(db, contractor):
    assert rating_policy.apply_suspension(db, contractor, now=NOW) == 0
    assert contractor.suspended_until is None


def test_default_levels_idempotent(db):
    assert len(levels.create_default_levels(db)) == 4
    assert len(levels.create_default_levels(db)) == 4
    with pytest.raises(ConflictError):
        levels.create_level(db, level=2, name="중복", completed_jobs_count=5)


@pytest.mark.parametrize("done, level", [(0, 1), (9, 1), (10, 2), (35, 3), (100, 4)])
def test_level_for_completed_jobs(db, done, level):
    levels.create_default_levels(db)
    assert levels.level_for_completed_jobs(db, done) == level


def test_level_up_on_completion(db, seller, make_user, make_job):
    c = make_user("contractor", completed_jobs=9)
    job = make_job(seller)
    crud.accept_job(db, job.id, c)
    crud.update_job_status(db, job.id, "product_ready", seller)
    for s in ("pickup_completed", "in_progress", "completed"):
        crud.update_job_status(db, job.id, s, c)

    db.refresh(c)
    assert c.completed_jobs == 10
    assert c.level == 2
    titles = [n.title for n in notifications.get_notifications(db, c.id)]
    assert "등급 상승" in titles
