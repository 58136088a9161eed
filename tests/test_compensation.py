# tests/test_compensation.py
from datetime import datetime, timedelta, timezone

import pytest

from insteam import crud
from insteam.errors import ConflictError, InvalidTransition, PermissionDenied
from insteam.logic import compensation, points, system_settings


def _balance(db, user, role):
    return points.get_balance(db, user.id, role).balance


def _to_product_not_ready(db, job, seller, contractor):
    crud.accept_job(db, job.id, contractor)
    crud.update_job_status(db, job.id, "product_preparing", seller)
    crud.update_job_status(db, job.id, "product_not_ready", contractor)


def _to_customer_absent(db, job, seller, contractor):
    crud.accept_job(db, job.id, contractor)
    crud.update_job_status(db, job.id, "product_ready", seller)
    crud.update_job_status(db, job.id, "pickup_completed", contractor)
    crud.update_job_status(db, job.id, "customer_absent", contractor)


def test_product_not_ready_pays_partial_and_refunds_rest(db, seller, contractor, admin, make_job):
    job = make_job(seller, amount=100000)
    _to_product_not_ready(db, job, seller, contractor)

    rec = compensation.process_compensation(db, job.id, "product_not_ready", "제품 미입고", admin)
    assert rec.amount == 30000
    assert rec.rate == 30

    assert _balance(db, contractor, "contractor") == 30000
    assert _balance(db, seller, "seller") == 70000
    job = crud.get_job(db, job.id)
    assert job.status == "compensation_completed"
    assert job.final_amount == 30000
    escrow = points.get_escrow(db, job.id)
    assert escrow.status == "refunded"
    assert escrow.amount == 0


def test_customer_absent_pays_full_escrow(db, seller, contractor, admin, make_job):
    job = make_job(seller, amount=60000)
    _to_customer_absent(db, job, seller, contractor)

    rec = compensation.process_compensation(db, job.id, "customer_absent", None, admin)
    assert rec.amount == 60000
    assert _balance(db, contractor, "contractor") == 60000
    assert _balance(db, seller, "seller") == 0
    assert points.get_escrow(db, job.id).status == "released"


def test_type_must_match_job_status(db, seller, contractor, admin, make_job):
    job = make_job(seller)
    _to_product_not_ready(db, job, seller, contractor)
    with pytest.raises(ConflictError):
        compensation.process_compensation(db, job.id, "customer_absent", None, admin)
    assert crud.get_job(db, job.id).status == "product_not_ready"


def test_compensation_only_once(db, seller, contractor, admin, make_job):
    job = make_job(seller)
    _to_product_not_ready(db, job, seller, contractor)
    compensation.process_compensation(db, job.id, "product_not_ready", None, admin)
    with pytest.raises(ConflictError):
        compensation.process_compensation(db, job.id, "product_not_ready", None, admin)


def test_reschedule_request_by_seller(db, seller, contractor, make_job):
    job = make_job(seller)
    _to_product_not_ready(db, job, seller, contractor)
    with pytest.raises(PermissionDenied):
        compensation.request_reschedule(db, job.id, contractor)
    job = compensation.request_reschedule(db, job.id, seller, "다음 주로")
    assert job.status == "reschedule_requested"


def test_schedule_change_with_fee(db, seller, contractor, admin, make_job):
    system_settings.update_compensation_policy(db, 30, 100, 10, admin.id)
    points.charge_points(db, contractor.id, "contractor", 20000)
    start = datetime.now(timezone.utc) + timedelta(days=5)
    job = make_job(seller, amount=100000, scheduled_at=start)
    crud.accept_job(db, job.id, contractor)

    new_date = start + timedelta(days=2)
    rec = compensation.process_schedule_change(db, job.id, contractor, new_date, "자재 지연")
    assert rec.fee_amount == 10000
    assert _balance(db, contractor, "contractor") == 10000

    job = crud.get_job(db, job.id)
    assert job.status == "schedule_changed"
    assert len(compensation.get_job_schedule_changes(db, job.id)) == 1


def test_schedule_change_not_allowed_after_pickup(db, seller, contractor, make_job):
    start = datetime.now(timezone.utc) + timedelta(days=5)
    job = make_job(seller, scheduled_at=start)
    crud.accept_job(db, job.id, contractor)
    crud.update_job_status(db, job.id, "product_ready", seller)
    crud.update_job_status(db, job.id, "pickup_completed", contractor)
    with pytest.raises(InvalidTransition):
        compensation.process_schedule_change(db, job.id, contractor, start + timedelta(days=1))


def test_stats(db, seller, contractor, admin, make_job):
    job = make_job(seller, amount=100000)
    _to_product_not_ready(db, job, seller, contractor)
    compensation.process_compensation(db, job.id, "product_not_ready", None, admin)
    stats = compensation.get_compensation_stats(db)
    assert stats["total_count"] == 1
    assert stats["total_amount"] == 30000
    assert stats["by_type"]["product_not_ready"] == {"count": 1, "amount": 30000}
    assert stats["today_count"] == 1
