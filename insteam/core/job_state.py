# insteam/core/job_state.py
# 작업 상태 전이표 + 역할별 허용 전이
from __future__ import annotations

import logging
from typing import Dict, FrozenSet, Optional, Set, Tuple

from insteam import models
from insteam.core.time_policy import _utcnow
from insteam.errors import InvalidTransition
from insteam.models import JobStatus, UserRole

logger = logging.getLogger(__name__)

S = JobStatus

TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    S.PENDING: frozenset({S.ASSIGNED, S.CANCELLED}),
    S.ASSIGNED: frozenset({S.PRODUCT_PREPARING, S.PRODUCT_READY, S.SCHEDULE_CHANGED, S.CANCELLED}),
    S.PRODUCT_PREPARING: frozenset({S.PRODUCT_READY, S.PRODUCT_NOT_READY, S.SCHEDULE_CHANGED, S.CANCELLED}),
    S.PRODUCT_READY: frozenset({S.PICKUP_COMPLETED, S.SCHEDULE_CHANGED, S.CANCELLED}),
    S.PICKUP_COMPLETED: frozenset({S.IN_PROGRESS, S.CUSTOMER_ABSENT}),
    S.IN_PROGRESS: frozenset({S.COMPLETED, S.CUSTOMER_ABSENT}),
    S.PRODUCT_NOT_READY: frozenset({S.RESCHEDULE_REQUESTED, S.COMPENSATION_COMPLETED}),
    S.CUSTOMER_ABSENT: frozenset({S.RESCHEDULE_REQUESTED, S.COMPENSATION_COMPLETED}),
    S.RESCHEDULE_REQUESTED: frozenset({S.SCHEDULE_CHANGED, S.CANCELLED}),
    S.SCHEDULE_CHANGED: frozenset({S.PRODUCT_PREPARING, S.PRODUCT_READY, S.PICKUP_COMPLETED, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.COMPENSATION_COMPLETED: frozenset(),
}

TERMINAL: FrozenSet[JobStatus] = frozenset(s for s, nxt in TRANSITIONS.items() if not nxt)

# 시공자와 같은 시간대 중복 수락 검사에 쓰는 "진행 중" 상태
ACTIVE: FrozenSet[JobStatus] = frozenset(set(JobStatus) - TERMINAL - {S.PENDING})

# 픽업 전 (판매자 취소 가능)
BEFORE_PICKUP: FrozenSet[JobStatus] = frozenset({
    S.PENDING, S.ASSIGNED, S.PRODUCT_PREPARING, S.PRODUCT_READY, S.RESCHEDULE_REQUESTED, S.SCHEDULE_CHANGED,
})

# 전용 처리 함수로만 들어갈 수 있는 상태 (기록/정산이 함께 필요)
#   schedule_changed       -> compensation.process_schedule_change
#   compensation_completed -> compensation.process_compensation
DEDICATED_TARGETS: Dict[JobStatus, str] = {
    S.SCHEDULE_CHANGED: "process_schedule_change",
    S.COMPENSATION_COMPLETED: "process_compensation",
}

# 담당 시공자가 update_job_status 로 직접 할 수 있는 전이
CONTRACTOR_MOVES: Set[Tuple[JobStatus, JobStatus]] = {
    (S.PRODUCT_READY, S.PICKUP_COMPLETED),
    (S.SCHEDULE_CHANGED, S.PICKUP_COMPLETED),
    (S.PICKUP_COMPLETED, S.IN_PROGRESS),
    (S.IN_PROGRESS, S.COMPLETED),
    (S.PRODUCT_PREPARING, S.PRODUCT_NOT_READY),
    (S.PICKUP_COMPLETED, S.CUSTOMER_ABSENT),
    (S.IN_PROGRESS, S.CUSTOMER_ABSENT),
}

# 작업 소유 판매자
SELLER_MOVES: Set[Tuple[JobStatus, JobStatus]] = {
    (S.ASSIGNED, S.PRODUCT_PREPARING),
    (S.ASSIGNED, S.PRODUCT_READY),
    (S.PRODUCT_PREPARING, S.PRODUCT_READY),
    (S.SCHEDULE_CHANGED, S.PRODUCT_PREPARING),
    (S.SCHEDULE_CHANGED, S.PRODUCT_READY),
    (S.PRODUCT_NOT_READY, S.RESCHEDULE_REQUESTED),
    (S.CUSTOMER_ABSENT, S.RESCHEDULE_REQUESTED),
} | {(s, S.CANCELLED) for s in BEFORE_PICKUP}


def can_transition(from_status, to_status) -> bool:
    return JobStatus(to_status) in TRANSITIONS[JobStatus(from_status)]


def assert_transition(from_status, to_status) -> None:
    if not can_transition(from_status, to_status):
        raise InvalidTransition(JobStatus(from_status).value, JobStatus(to_status).value)


def actor_may(role, from_status, to_status, *, is_owner: bool, is_assignee: bool) -> bool:
    """
    역할 기준 허용 여부 (전이표 검사는 별도).
    - admin: 전이표에 있으면 모두 허용
    """
    role = UserRole(role)
    move = (JobStatus(from_status), JobStatus(to_status))
    if role == UserRole.ADMIN:
        return True
    if role == UserRole.CONTRACTOR:
        return is_assignee and move in CONTRACTOR_MOVES
    if role == UserRole.SELLER:
        return is_owner and move in SELLER_MOVES
    return False


def apply_transition(job: models.Job, to_status, actor_id: Optional[int], note: Optional[str] = None) -> None:
    """전이표만 검사하고 상태 변경 + 진행 이력 1건 추가. commit 은 호출자 책임."""
    to = JobStatus(to_status)
    assert_transition(job.status, to)
    prev = job.status
    now = _utcnow()
    job.status = to.value
    job.updated_at = now
    job.progress_steps.append(
        models.JobProgressStep(status=to.value, actor_id=actor_id, note=note, created_at=now)
    )
    logger.info("job %s: %s -> %s (actor=%s)", job.id, prev, to.value, actor_id)
