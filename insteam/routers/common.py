# insteam/routers/common.py
# 도메인 예외 → HTTP 상태코드
from fastapi import HTTPException, status

from insteam.errors import ConflictError, NotFoundError, PermissionDenied, PolicyViolation


def _translate_error(exc: Exception) -> None:
    if isinstance(exc, HTTPException):
        raise exc
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, PermissionDenied):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, PolicyViolation):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    # 모르는 예외는 그대로 올려서 전역 500 핸들러가 기록하게 둔다
    raise exc
