# tests/test_job_state.py
from datetime import datetime, timedelta, timezone

import pytest

from insteam import crud, models
from insteam.core import job_state
from insteam.errors import ConflictError, InvalidTransition, PermissionDenied
from insteam.logic import compensation, points
from insteam.models import JobStatus as S


def test_happy_path_is_allowed():
    path = [S.PENDING, S.ASSIGNED, S.PRODUCT_PREPARING, S.PRODUCT_READY,
            S.PICKUP_COMPLETED, S.IN_PROGRESS, S.COMPLETED]
    for a, b in zip(path, path[1:]):
        assert job_state.can_transition(a, b), f"{a} -> {b}"


def test_terminal_statuses_have_no_exits():
    assert job_state.TERMINAL == {S.COMPLETED, S.CANCELLED, S.COMPENSATION_COMPLETED}
    for s in job_state.TERMINAL:
        for t in S:
            assert not job_state.can_transition(s, t)


def test_skipping_steps_is_rejected():
    assert not job_state.can_transition(S.PENDING, S.COMPLETED)
    assert not job_state.can_transition(S.ASSIGNED, S.IN_PROGRESS)
    with pytest.raises(InvalidTransition) as ei:
        job_state.assert_transition("pending", "in_progress")
    assert ei.value.from_status == "pending"
    assert ei.value.to_status == "in_progress"


def test_exception_statuses_lead_to_compensation_or_reschedule():
    for s in (S.PRODUCT_NOT_READY, S.CUSTOMER_ABSENT):
        assert job_state.TRANSITIONS[s] == {S.RESCHEDULE_REQUESTED, S.COMPENSATION_COMPLETED}


def test_no_cancel_after_pickup():
    for s in (S.PICKUP_COMPLETED, S.IN_PROGRESS):
        assert not job_state.can_transition(s, S.CANCELLED)


def test_nothing_returns_to_pending():
    for s in S:
        assert not job_state.can_transition(s, S.PENDING)


def test_actor_rules():
    # 담당 시공자만 완료 처리
    assert job_state.actor_may("contractor", S.IN_PROGRESS, S.COMPLETED, is_owner=False, is_assignee=True)
    assert not job_state.actor_may("contractor", S.IN_PROGRESS, S.COMPLETED, is_owner=False, is_assignee=False)
    assert not job_state.actor_may("seller", S.IN_PROGRESS, S.COMPLETED, is_owner=True, is_assignee=False)

    # 판매자는 픽업 전에만 취소
    assert job_state.actor_may("seller", S.PRODUCT_READY, S.CANCELLED, is_owner=True, is_assignee=False)
    assert not job_state.actor_may("seller", S.PRODUCT_READY, S.CANCELLED, is_owner=False, is_assignee=False)

    assert job_state.actor_may("admin", S.ASSIGNED, S.CANCELLED, is_owner=False, is_assignee=False)
    assert not job_state.actor_may("customer", S.PENDING, S.CANCELLED, is_owner=False, is_assignee=False)


def test_apply_transition_appends_progress_step():
    job = models.Job(id="AB12CD", status=S.ASSIGNED.value)
    job_state.apply_transition(job, S.PRODUCT_READY, actor_id=7, note="준비 완료")
    assert job.status == "product_ready"
    assert job.progress_steps[-1].status == "product_ready"
    assert job.progress_steps[-1].actor_id == 7
    assert job.updated_at is not None


def test_apply_transition_rejects_illegal_move():
    job = models.Job(id="AB12CD", status=S.COMPLETED.value)
    with pytest.raises(InvalidTransition):
        job_state.apply_transition(job, S.CANCELLED, actor_id=1)
    assert job.status == "completed"
    assert job.progress_steps == []


# ---------------------------------------------------------------------
# update_job_status 경유
# ---------------------------------------------------------------------
SLOT = datetime(2025, 4, 1, 1, 0, tzinfo=timezone.utc)


def test_contractor_cannot_double_book_same_slot(db, seller, contractor, make_job):
    first = make_job(seller, scheduled_at=SLOT)
    second = make_job(seller, scheduled_at=SLOT)
    other_slot = make_job(seller, scheduled_at=SLOT + timedelta(hours=3))

    crud.accept_job(db, first.id, contractor)
    with pytest.raises(ConflictError):
        crud.accept_job(db, second.id, contractor)
    db.rollback()
    assert crud.get_job(db, second.id).status == "pending"
    assert crud.accept_job(db, other_slot.id, contractor).status == "assigned"

    # 앞 작업이 끝나면 같은 시간대도 다시 받을 수 있다
    crud.update_job_status(db, first.id, "cancelled", seller, "취소")
    assert crud.accept_job(db, second.id, contractor).status == "assigned"


def test_seller_marks_ready_straight_from_assigned(db, seller, contractor, make_job):
    job = make_job(seller)
    crud.accept_job(db, job.id, contractor)
    job = crud.update_job_status(db, job.id, "product_ready", seller)
    assert job.status == "product_ready"
    assert [s.status for s in job.progress_steps] == ["pending", "assigned", "product_ready"]
    with pytest.raises(PermissionDenied):
        crud.update_job_status(db, job.id, "pickup_completed", seller)


def test_pickup_after_schedule_change(db, seller, contractor, make_job):
    job = make_job(seller, scheduled_at=SLOT)
    crud.accept_job(db, job.id, contractor)
    compensation.process_schedule_change(db, job.id, contractor, SLOT + timedelta(days=2), "자재 지연")
    assert crud.get_job(db, job.id).status == "schedule_changed"

    job = crud.update_job_status(db, job.id, "pickup_completed", contractor)
    assert job.status == "pickup_completed"
    assert job.progress_steps[-1].actor_id == contractor.id


@pytest.mark.parametrize("target", ["compensation_completed", "schedule_changed"])
def test_dedicated_targets_refused_even_for_admin(db, seller, contractor, admin, make_job, target):
    job = make_job(seller, scheduled_at=SLOT)
    crud.accept_job(db, job.id, contractor)
    crud.update_job_status(db, job.id, "product_preparing", seller)
    crud.update_job_status(db, job.id, "product_not_ready", contractor)
    if target == "schedule_changed":
        crud.update_job_status(db, job.id, "reschedule_requested", seller)

    before = crud.get_job(db, job.id).status
    with pytest.raises(ConflictError):
        crud.update_job_status(db, job.id, target, admin)
    assert crud.get_job(db, job.id).status == before
    assert points.get_escrow(db, job.id).status == "pending"
    assert compensation.get_job_schedule_changes(db, job.id) == []
    assert compensation.get_job_compensations(db, job.id) == []
