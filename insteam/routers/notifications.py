# insteam/routers/notifications.py
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from insteam import database, models, schemas
from insteam.logic import notifications as N
from insteam.routers.common import _translate_error
from insteam.security import get_current_user, require_admin

router = APIRouter(prefix="/notifications", tags=["notifications"])
get_db = database.get_db


@router.get("", response_model=List[schemas.NotificationOut])
def my_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return N.get_notifications(db, user.id, unread_only=unread_only, limit=limit)


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return {"unread": N.get_unread_count(db, user.id)}


@router.post("/read-all")
def read_all(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return {"updated": N.mark_all_as_read(db, user.id)}


@router.post("/{notification_id}/read", response_model=schemas.NotificationOut)
def read_one(notification_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    try:
        return N.mark_as_read(db, notification_id, user.id)
    except Exception as e:
        _translate_error(e)


# ---------------- 관리자 알림 ----------------
@router.get("/admin", response_model=List[schemas.AdminNotificationOut])
def admin_notifications(
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    return N.get_admin_notifications(db, unread_only=unread_only)


@router.post("/admin/{notification_id}/read", response_model=schemas.AdminNotificationOut)
def admin_read(notification_id: int, db: Session = Depends(get_db), admin: models.User = Depends(require_admin)):
    try:
        return N.mark_admin_notification_read(db, notification_id, admin.id)
    except Exception as e:
        _translate_error(e)
