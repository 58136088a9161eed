# insteam/security.py
# 비밀번호 해싱 + JWT + 역할 검사 의존성
import logging
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from insteam import models
from insteam.config.settings import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from insteam.core.time_policy import _utcnow
from insteam.database import get_db
from insteam.models import ApprovalStatus, UserRole

logger = logging.getLogger(__name__)

# -----------------------------------------------------
# 🔑 비밀번호 해싱
# -----------------------------------------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password[:72], hashed_password)


def get_password_hash(password: str) -> str:
    # bcrypt 는 72바이트까지만 사용
    return pwd_context.hash(password[:72])


# -----------------------------------------------------
# 🪙 OAuth2 스키마 (Swagger Authorize와 연결)
# -----------------------------------------------------
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


# -----------------------------------------------------
# 🧾 JWT 생성 / 로그인
# -----------------------------------------------------
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = _utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def authenticate(db: Session, email: str, password: str) -> Optional[str]:
    """이메일/비밀번호가 맞으면 access token, 아니면 None."""
    user = db.query(models.User).filter(models.User.email == email).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return create_access_token({"sub": str(user.id), "role": user.role})


# -----------------------------------------------------
# 👤 현재 로그인한 유저
# -----------------------------------------------------
def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> models.User:
    credentials_error = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        sub = payload.get("sub")
        if sub is None:
            raise credentials_error
        user_id = int(sub)
    except (JWTError, ValueError):
        raise credentials_error

    user = db.get(models.User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_roles(*roles: UserRole):
    allowed = {UserRole(r).value for r in roles}

    def _dep(user: models.User = Depends(get_current_user)) -> models.User:
        if user.role not in allowed:
            raise HTTPException(status_code=403, detail=f"role not allowed: {user.role}")
        return user

    return _dep


def require_approved(user: models.User = Depends(get_current_user)) -> models.User:
    """판매자/시공자는 관리자 승인 후에만 업무 API 사용 가능."""
    if user.role in (UserRole.SELLER.value, UserRole.CONTRACTOR.value) \
            and user.approval_status != ApprovalStatus.APPROVED.value:
        raise HTTPException(status_code=403, detail=f"account not approved: {user.approval_status}")
    return user


require_admin = require_roles(UserRole.ADMIN)
