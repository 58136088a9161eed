# tests/test_cancellation.py
from datetime import datetime, timedelta, timezone

import pytest

from insteam import crud
from insteam.errors import ConflictError, InvalidTransition, NotFoundError
from insteam.logic import cancellation, points

# 2025-03-10 10:00 KST
T0 = datetime(2025, 3, 10, 1, 0, tzinfo=timezone.utc)


def _accept_and_cancel(db, job, contractor, at):
    crud.accept_job(db, job.id, contractor, now=at)
    return cancellation.cancel_job(db, job.id, contractor, "개인 사정", now=at + timedelta(minutes=30))


def test_free_cancellation_closes_job_and_refunds_seller(db, seller, contractor, make_job):
    job = make_job(seller, amount=100000)
    assert points.get_balance(db, seller.id, "seller").balance == 0
    rec = _accept_and_cancel(db, job, contractor, T0)

    assert rec.fee_amount == 0
    assert rec.cancellation_number == 1
    job = crud.get_job(db, job.id)
    assert job.status == "cancelled"
    assert job.cancelled_at is not None
    assert job.cancellation_reason == "개인 사정"
    assert job.progress_steps[-1].status == "cancelled"

    escrow = points.get_escrow(db, job.id)
    assert escrow.status == "refunded"
    assert escrow.amount == 0
    assert points.get_balance(db, seller.id, "seller").balance == 100000

    # 종료된 작업은 다시 수락할 수 없다
    with pytest.raises(InvalidTransition):
        crud.accept_job(db, job.id, contractor, now=T0 + timedelta(hours=1))


def test_over_daily_limit_charges_fee(db, seller, contractor, make_job):
    points.charge_points(db, contractor.id, "contractor", 10000)
    for i in range(3):
        rec = _accept_and_cancel(db, make_job(seller, amount=100000), contractor, T0 + timedelta(hours=i))
        assert rec.fee_amount == 0
        assert rec.cancellation_number == i + 1

    job = make_job(seller, amount=100000)
    crud.accept_job(db, job.id, contractor, now=T0 + timedelta(hours=4))
    check = cancellation.check_cancellation(db, job.id, contractor.id, now=T0 + timedelta(hours=4, minutes=5))
    assert check.can_cancel
    assert check.requires_fee
    assert check.total_cancellations_today == 3
    assert check.fee_amount == 5000  # 5%

    rec = cancellation.cancel_job(db, job.id, contractor, "또 취소", now=T0 + timedelta(hours=4, minutes=5))
    assert rec.fee_amount == 5000
    assert rec.total_cancellations_today == 3
    assert points.get_balance(db, contractor.id, "contractor").balance == 5000
    fee_tx = points.get_transaction_history(db, contractor.id, "contractor")[0]
    assert fee_tx.deduction_type == "job_cancellation_fee"
    # 판매자는 수수료와 무관하게 전액 환불
    assert points.get_balance(db, seller.id, "seller").balance == 400000


def test_fee_requires_contractor_balance(db, seller, contractor, make_job):
    for i in range(3):
        _accept_and_cancel(db, make_job(seller), contractor, T0 + timedelta(hours=i))

    job = make_job(seller)
    crud.accept_job(db, job.id, contractor, now=T0 + timedelta(hours=4))
    with pytest.raises(ConflictError):
        cancellation.cancel_job(db, job.id, contractor, "잔액 없음", now=T0 + timedelta(hours=4, minutes=1))

    job = crud.get_job(db, job.id)
    assert job.status == "assigned"
    assert points.get_escrow(db, job.id).status == "pending"
    assert len(cancellation.get_contractor_cancellations(db, contractor.id)) == 3


def test_daily_count_resets_on_kst_midnight(db, seller, contractor, make_job):
    # 23:00 KST 에 3번 취소
    late = datetime(2025, 3, 10, 14, 0, tzinfo=timezone.utc)
    for i in range(3):
        _accept_and_cancel(db, make_job(seller), contractor, late + timedelta(minutes=i))

    # 다음날 00:30 KST
    next_day = datetime(2025, 3, 10, 15, 30, tzinfo=timezone.utc)
    job = make_job(seller)
    crud.accept_job(db, job.id, contractor, now=next_day)
    check = cancellation.check_cancellation(db, job.id, contractor.id, now=next_day)
    assert check.can_cancel
    assert check.total_cancellations_today == 0
    assert check.fee_amount == 0
    assert check.cancellation_number == 4


def test_cannot_cancel_after_window(db, seller, contractor, make_job):
    job = make_job(seller)
    crud.accept_job(db, job.id, contractor, now=T0)
    later = T0 + timedelta(hours=25)
    check = cancellation.check_cancellation(db, job.id, contractor.id, now=later)
    assert not check.can_cancel
    assert "24시간" in check.reason
    with pytest.raises(ConflictError):
        cancellation.cancel_job(db, job.id, contractor, "늦은 취소", now=later)
    assert crud.get_job(db, job.id).status == "assigned"


def test_only_assignee_can_cancel(db, seller, contractor, make_user, make_job):
    other = make_user("contractor")
    job = make_job(seller)
    crud.accept_job(db, job.id, contractor, now=T0)
    check = cancellation.check_cancellation(db, job.id, other.id, now=T0)
    assert not check.can_cancel
    with pytest.raises(ConflictError):
        cancellation.cancel_job(db, job.id, other, "x", now=T0)
    with pytest.raises(NotFoundError):
        cancellation.cancel_job(db, "NOPE00", contractor, "x", now=T0)


def test_stats(db, seller, contractor, make_job):
    job = make_job(seller)
    _accept_and_cancel(db, job, contractor, T0)
    _accept_and_cancel(db, make_job(seller), contractor, T0 + timedelta(hours=1))
    stats = cancellation.get_cancellation_stats(db, now=T0 + timedelta(hours=2))
    assert stats["total_cancellations"] == 2
    assert stats["today_cancellations"] == 2
    assert stats["top_contractors"] == [
        {"contractor_id": contractor.id, "contractor_name": contractor.name, "count": 2}
    ]
    assert len(cancellation.get_job_cancellations(db, job.id)) == 1
