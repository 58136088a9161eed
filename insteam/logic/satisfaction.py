# insteam/logic/satisfaction.py
# 고객 만족도 조사 (토큰 링크로 비회원 응답)
from __future__ import annotations

import logging
import secrets
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from insteam import models
from insteam.core.time_policy import _utcnow
from insteam.errors import ConflictError, NotFoundError, PolicyViolation
from insteam.logic import notifications as N
from insteam.logic import rating_policy

logger = logging.getLogger(__name__)

OVERALL_KEYS = ("overall", "overall_satisfaction", "general_satisfaction")

SURVEY_QUESTIONS: List[Dict[str, Any]] = [
    {"id": "overall", "text": "전체적인 시공 만족도는 어떠셨나요?", "type": "rating", "required": True},
    {"id": "punctuality", "text": "시공자가 약속 시간을 잘 지켰나요?", "type": "rating", "required": True},
    {"id": "quality", "text": "시공 품질에 만족하시나요?", "type": "rating", "required": True},
    {"id": "kindness", "text": "시공자가 친절했나요?", "type": "rating", "required": True},
    {"id": "cleanliness", "text": "시공 후 정리정돈이 잘 되었나요?", "type": "rating", "required": True},
    {"id": "recommend", "text": "지인에게 추천하시겠습니까?", "type": "boolean", "required": True},
    {"id": "feedback", "text": "기타 의견을 남겨주세요.", "type": "text", "required": False},
]


def get_survey_questions() -> List[Dict[str, Any]]:
    return [dict(q) for q in SURVEY_QUESTIONS]


def create_survey(db: Session, job: models.Job, *, auto_commit: bool = True) -> models.SatisfactionSurvey:
    """작업당 1건. 이미 있으면 기존 조사를 돌려준다."""
    existing = get_survey_for_job(db, job.id)
    if existing is not None:
        return existing
    survey = models.SatisfactionSurvey(
        job_id=job.id,
        contractor_id=job.contractor_id,
        customer_name=job.customer_name,
        customer_phone=job.customer_phone,
        access_token=secrets.token_urlsafe(24),
        is_completed=False,
        created_at=_utcnow(),
    )
    db.add(survey)
    db.flush()
    if auto_commit:
        db.commit()
        db.refresh(survey)
    logger.info("survey created job=%s", job.id)
    return survey


def get_survey_for_job(db: Session, job_id: str) -> Optional[models.SatisfactionSurvey]:
    return db.query(models.SatisfactionSurvey).filter(models.SatisfactionSurvey.job_id == job_id).first()


def get_survey_by_token(db: Session, token: str) -> models.SatisfactionSurvey:
    survey = (
        db.query(models.SatisfactionSurvey)
        .filter(models.SatisfactionSurvey.access_token == token)
        .first()
    )
    if survey is None:
        raise NotFoundError("survey not found")
    return survey


def _rating_value(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise PolicyViolation(f"{key} 는 1~5 정수여야 합니다.")
    value = int(value)
    if not (1 <= value <= 5):
        raise PolicyViolation(f"{key} 는 1~5 정수여야 합니다.")
    return value


def _overall_from(responses: Dict[str, Any]) -> int:
    for key in OVERALL_KEYS:
        if key in responses and responses[key] is not None:
            return _rating_value(key, responses[key])
    raise PolicyViolation("전체 만족도(overall) 응답이 필요합니다.")


def submit_survey(
    db: Session, token: str, responses: Dict[str, Any], comment: Optional[str] = None,
) -> models.SatisfactionSurvey:
    survey = get_survey_by_token(db, token)
    if survey.is_completed:
        raise ConflictError("survey already submitted")

    overall = _overall_from(responses)
    for q in SURVEY_QUESTIONS:
        if q["type"] == "rating" and q["id"] in responses and responses[q["id"]] is not None:
            _rating_value(q["id"], responses[q["id"]])

    survey.responses = dict(responses)
    survey.overall_rating = overall
    survey.comment = comment
    survey.is_completed = True
    survey.completed_at = _utcnow()

    job = db.get(models.Job, survey.job_id)
    if job is not None:
        job.customer_satisfaction = overall

    contractor = db.get(models.User, survey.contractor_id) if survey.contractor_id else None
    if contractor is not None:
        count = int(contractor.rating_count or 0)
        total = float(contractor.rating or 0) * count + overall
        contractor.rating_count = count + 1
        contractor.rating = round(total / contractor.rating_count, 2)
        days = rating_policy.apply_suspension(db, contractor, auto_commit=False)
        N.create_notification(
            db, user_id=contractor.id, title="고객 평가 도착",
            message=f"작업 {survey.job_id} 고객 평가: {overall}점 (평균 {contractor.rating:.2f})",
            type="info", auto_commit=False,
        )
        if days != 0:
            N.create_notification(
                db, user_id=contractor.id, title="신규 작업 수락 정지",
                message="평점 기준 미달로 신규 작업 수락이 "
                        + ("영구 정지되었습니다." if days == rating_policy.PERMANENT else f"{days}일간 정지되었습니다."),
                type="warning", auto_commit=False,
            )

    db.commit()
    db.refresh(survey)
    logger.info("survey submitted job=%s overall=%s", survey.job_id, overall)
    return survey


def get_contractor_average_rating(db: Session, contractor_id: int) -> Dict[str, Any]:
    avg, cnt = (
        db.query(func.avg(models.SatisfactionSurvey.overall_rating), func.count(models.SatisfactionSurvey.id))
        .filter(
            models.SatisfactionSurvey.contractor_id == contractor_id,
            models.SatisfactionSurvey.is_completed.is_(True),
        )
        .one()
    )
    return {"contractor_id": contractor_id, "average_rating": round(float(avg or 0), 2), "count": int(cnt or 0)}


def get_survey_stats(db: Session, contractor_id: Optional[int] = None) -> Dict[str, Any]:
    q = db.query(models.SatisfactionSurvey)
    if contractor_id is not None:
        q = q.filter(models.SatisfactionSurvey.contractor_id == contractor_id)
    surveys = q.all()
    completed = [s for s in surveys if s.is_completed and s.overall_rating is not None]
    distribution = {str(i): 0 for i in range(1, 6)}
    for s in completed:
        distribution[str(s.overall_rating)] += 1
    total = len(surveys)
    return {
        "total_surveys": total,
        "completed_surveys": len(completed),
        "response_rate": round(len(completed) / total * 100, 1) if total else 0.0,
        "average_rating": round(sum(s.overall_rating for s in completed) / len(completed), 2) if completed else 0.0,
        "rating_distribution": distribution,
    }
