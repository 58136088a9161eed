from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from insteam import crud, database, models, schemas
from insteam.routers.common import _translate_error
from insteam.security import authenticate, get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=schemas.UserOut, status_code=status.HTTP_201_CREATED)
def register(body: schemas.UserCreate, db: Session = Depends(database.get_db)):
    """
    판매자/시공자는 관리자 승인(pending) 후 사용 가능, 고객은 즉시 승인.
    관리자 계정은 가입 불가 (403).
    """
    try:
        return crud.register_user(db, body)
    except Exception as e:
        _translate_error(e)


@router.post("/login", response_model=schemas.Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(database.get_db)):
    """이메일(username 필드) + 비밀번호로 로그인하고 JWT 토큰 발급"""
    token = authenticate(db, form_data.username, form_data.password)
    if token is None:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me", response_model=schemas.UserOut)
def me(user: models.User = Depends(get_current_user)):
    return user
