# insteam/routers/surveys.py
# 고객 만족도 조사: 토큰 링크로 로그인 없이 응답
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from insteam import crud, database, models, schemas
from insteam.logic import satisfaction
from insteam.models import UserRole
from insteam.routers.common import _translate_error
from insteam.security import get_current_user, require_admin

router = APIRouter(prefix="/surveys", tags=["surveys"])
get_db = database.get_db


@router.get("/questions", response_model=List[schemas.SurveyQuestion])
def questions():
    return satisfaction.get_survey_questions()


@router.post("/jobs/{job_id}", response_model=schemas.SurveyOut, status_code=status.HTTP_201_CREATED)
def create_for_job(job_id: str, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    try:
        job = crud.get_job(db, job_id)
        if user.role != UserRole.ADMIN.value and job.seller_id != user.id:
            raise HTTPException(status_code=403, detail="not your job")
        return satisfaction.create_survey(db, job)
    except Exception as e:
        _translate_error(e)


@router.get("/admin/stats", response_model=Dict[str, Any])
def stats(
    contractor_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    return satisfaction.get_survey_stats(db, contractor_id)


@router.get("/contractors/{contractor_id}/rating", response_model=Dict[str, Any])
def contractor_rating(
    contractor_id: int, db: Session = Depends(get_db), _user: models.User = Depends(get_current_user),
):
    return satisfaction.get_contractor_average_rating(db, contractor_id)


@router.get("/{token}", response_model=schemas.SurveyOut)
def read_survey(token: str, db: Session = Depends(get_db)):
    try:
        return satisfaction.get_survey_by_token(db, token)
    except Exception as e:
        _translate_error(e)


@router.post("/{token}", response_model=schemas.SurveyOut)
def submit(token: str, body: schemas.SurveySubmitIn = Body(...), db: Session = Depends(get_db)):
    try:
        return satisfaction.submit_survey(db, token, body.responses, body.comment)
    except Exception as e:
        _translate_error(e)
