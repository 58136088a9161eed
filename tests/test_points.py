# tests/test_points.py
from datetime import timedelta, timezone

import pytest

from insteam import crud, models, schemas
from insteam.errors import ConflictError, InsufficientPoints, PolicyViolation
from insteam.logic import points
from insteam.models import PointRole


def _balance(db, user, role="seller"):
    return points.get_balance(db, user.id, role).balance


def _complete(db, job, contractor, seller):
    crud.accept_job(db, job.id, contractor)
    crud.update_job_status(db, job.id, "product_ready", seller)
    for s in ("pickup_completed", "in_progress", "completed"):
        crud.update_job_status(db, job.id, s, contractor)
    return crud.get_job(db, job.id)


def test_charge_writes_balance_after(db, seller):
    t1 = points.charge_points(db, seller.id, PointRole.SELLER, 30000)
    t2 = points.charge_points(db, seller.id, PointRole.SELLER, 20000)
    assert (t1.balance_after, t2.balance_after) == (30000, 50000)
    bal = points.get_balance(db, seller.id, "seller")
    assert bal.balance == 50000
    assert bal.total_charged == 50000


def test_roles_keep_separate_balances(db, make_user):
    both = make_user("contractor")
    points.charge_points(db, both.id, "contractor", 1000)
    assert _balance(db, both, "contractor") == 1000
    assert _balance(db, both, "seller") == 0


def test_non_positive_amounts_rejected(db, seller):
    with pytest.raises(PolicyViolation):
        points.charge_points(db, seller.id, "seller", 0)
    with pytest.raises(PolicyViolation):
        points.charge_points(db, seller.id, "admin", 100)


def test_idempotent_charge(db, seller):
    a = points.charge_points(db, seller.id, "seller", 5000, idempotency_key="pg-001")
    b = points.charge_points(db, seller.id, "seller", 5000, idempotency_key="pg-001")
    assert a.id == b.id
    assert _balance(db, seller) == 5000


def test_deduct_never_goes_negative(db, contractor):
    points.charge_points(db, contractor.id, "contractor", 1000)
    with pytest.raises(InsufficientPoints) as ei:
        points.deduct_points(db, contractor.id, "contractor", 1500, deduction_type="penalty", description="벌점")
    db.rollback()
    assert ei.value.available == 1000
    assert _balance(db, contractor, "contractor") == 1000


def test_withdrawal_reject_refunds(db, contractor, admin):
    points.charge_points(db, contractor.id, "contractor", 10000)
    tx = points.request_withdrawal(
        db, contractor.id, "contractor", 4000, bank_name="국민", bank_account="123", account_holder="홍길동",
    )
    assert tx.status == "pending"
    assert _balance(db, contractor, "contractor") == 6000
    assert [t.id for t in points.get_pending_withdrawals(db)] == [tx.id]

    points.reject_withdrawal(db, tx.id, admin.id, "계좌 불일치")
    assert _balance(db, contractor, "contractor") == 10000
    assert points.get_pending_withdrawals(db) == []
    with pytest.raises(ConflictError):
        points.approve_withdrawal(db, tx.id, admin.id)


def test_withdrawal_approve_tracks_total(db, contractor, admin):
    points.charge_points(db, contractor.id, "contractor", 10000)
    tx = points.request_withdrawal(
        db, contractor.id, "contractor", 3000, bank_name="국민", bank_account="123", account_holder="홍길동",
    )
    done = points.approve_withdrawal(db, tx.id, admin.id, note="이체 완료")
    assert done.status == "completed"
    bal = points.get_balance(db, contractor.id, "contractor")
    assert (bal.balance, bal.total_withdrawn) == (7000, 3000)


def test_create_job_escrows_seller_points(db, seller, make_job):
    job = make_job(seller, amount=80000)
    assert _balance(db, seller) == 0
    escrow = points.get_escrow(db, job.id)
    assert escrow.status == "pending"
    assert escrow.amount == escrow.original_amount == 80000


def test_create_job_without_points_creates_nothing(db, seller):
    payload = schemas.JobCreate(title="t", address="a", budget_amount=50000)
    with pytest.raises(InsufficientPoints):
        crud.create_job(db, seller, payload)
    assert db.query(models.Job).count() == 0
    assert db.query(models.PointEscrow).count() == 0


def test_release_pays_contractor_minus_commission(db, seller, contractor, make_job):
    job = make_job(seller, amount=100000)
    job = _complete(db, job, contractor, seller)

    escrow = points.get_escrow(db, job.id)
    assert escrow.release_due_at is not None

    points.release_escrow(db, job.id)
    # 평점 없는 시공자 → 시공자 수수료 2%
    assert _balance(db, contractor, "contractor") == 98000
    escrow = points.get_escrow(db, job.id)
    assert escrow.status == "released"
    assert escrow.amount == 0
    assert crud.get_job(db, job.id).final_amount == 98000

    with pytest.raises(ConflictError):
        points.release_escrow(db, job.id)


def test_release_requires_completed_job(db, seller, contractor, make_job):
    job = make_job(seller)
    crud.accept_job(db, job.id, contractor)
    with pytest.raises(ConflictError):
        points.release_escrow(db, job.id)


def test_disputed_escrow_needs_admin(db, seller, contractor, admin, make_job):
    job = _complete(db, make_job(seller), contractor, seller)
    points.dispute_escrow(db, job.id, admin.id, "품질 이의")
    with pytest.raises(ConflictError):
        points.release_escrow(db, job.id)
    db.rollback()
    points.release_escrow(db, job.id, admin_id=admin.id)
    assert points.get_escrow(db, job.id).status == "released"


def test_release_due_escrows_only_after_hold(db, seller, contractor, make_job):
    job = _complete(db, make_job(seller, amount=50000), contractor, seller)
    due = points.get_escrow(db, job.id).release_due_at
    due = due if due.tzinfo else due.replace(tzinfo=timezone.utc)

    assert points.release_due_escrows(db, now=due - timedelta(minutes=1)) == 0
    assert points.release_due_escrows(db, now=due + timedelta(minutes=1)) == 1
    assert points.get_escrow(db, job.id).status == "released"
    assert points.release_due_escrows(db, now=due + timedelta(hours=1)) == 0


def test_seller_cancel_refunds_escrow(db, seller, make_job):
    job = make_job(seller, amount=40000)
    crud.update_job_status(db, job.id, "cancelled", seller, "고객 변심")
    assert _balance(db, seller) == 40000
    assert points.get_escrow(db, job.id).status == "refunded"
    assert crud.get_job(db, job.id).cancellation_reason == "고객 변심"


def test_history_is_newest_first(db, seller):
    points.charge_points(db, seller.id, "seller", 100)
    points.charge_points(db, seller.id, "seller", 200)
    hist = points.get_transaction_history(db, seller.id, "seller")
    assert [t.amount for t in hist] == [200, 100]


def test_idempotency_key_reuse_with_other_content_conflicts(db, seller, contractor):
    points.charge_points(db, seller.id, "seller", 5000, idempotency_key="pg-002")
    with pytest.raises(ConflictError):
        points.charge_points(db, seller.id, "seller", 7000, idempotency_key="pg-002")
    with pytest.raises(ConflictError):
        points.charge_points(db, contractor.id, "contractor", 5000, idempotency_key="pg-002")
    db.rollback()
    assert _balance(db, seller) == 5000
    assert _balance(db, contractor, "contractor") == 0


def test_internal_key_cannot_pre_empt_escrow(db, seller, monkeypatch):
    points.charge_points(db, seller.id, "seller", 1, idempotency_key="escrow:ABC123")
    monkeypatch.setattr(crud, "_generate_job_id", lambda _db: "ABC123")
    payload = schemas.JobCreate(title="t", address="a", budget_amount=50000)

    with pytest.raises(ConflictError):
        crud.create_job(db, seller, payload)
    assert db.query(models.Job).count() == 0
    assert db.query(models.PointEscrow).count() == 0
    assert _balance(db, seller) == 1


def test_admin_charge_rejects_reserved_key_prefix(client, headers, admin, seller):
    for key in ("escrow:ABC123", "release:ABC123", "compensation:X", "manual-charge:1"):
        r = client.post(
            "/points/admin/charge",
            json={"user_id": seller.id, "role": "seller", "amount": 1, "idempotency_key": key},
            headers=headers(admin),
        )
        assert r.status_code == 400, key
    r = client.post(
        "/points/admin/charge",
        json={"user_id": seller.id, "role": "seller", "amount": 1, "idempotency_key": "bank-20250310-1"},
        headers=headers(admin),
    )
    assert r.status_code == 201


def test_internal_key_replay_is_noop(db, seller, contractor, make_job):
    job = _complete(db, make_job(seller, amount=100000), contractor, seller)
    points.release_escrow(db, job.id)

    escrow_tx = points._find_by_key(db, f"escrow:{job.id}")
    again = points._apply(
        db, user_id=seller.id, role=PointRole.SELLER, type=models.TransactionType.ESCROW, amount=-100000,
        description="retry", idempotency_key=f"escrow:{job.id}", job_id=job.id,
    )
    assert again.id == escrow_tx.id

    release_tx = points._find_by_key(db, f"release:{job.id}")
    again = points._apply(
        db, user_id=contractor.id, role=PointRole.CONTRACTOR, type=models.TransactionType.RELEASE, amount=98000,
        description="retry", idempotency_key=f"release:{job.id}", job_id=job.id,
    )
    assert again.id == release_tx.id
    db.commit()

    assert _balance(db, seller) == 0
    assert _balance(db, contractor, "contractor") == 98000
    assert db.query(models.PointTransaction).filter(models.PointTransaction.job_id == job.id).count() == 2


def test_release_due_escrows_skips_disputed(db, seller, contractor, admin, make_job):
    disputed = _complete(db, make_job(seller, amount=50000), contractor, seller)
    normal = _complete(db, make_job(seller, amount=30000), contractor, seller)
    points.dispute_escrow(db, disputed.id, admin.id, "하자 신고")

    far = points.get_escrow(db, normal.id).release_due_at
    far = (far if far.tzinfo else far.replace(tzinfo=timezone.utc)) + timedelta(days=30)
    assert points.release_due_escrows(db, now=far) == 1
    assert points.get_escrow(db, disputed.id).status == "disputed"
    assert points.get_escrow(db, disputed.id).amount == 50000
    assert points.get_escrow(db, normal.id).status == "released"
