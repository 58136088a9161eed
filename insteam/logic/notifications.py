# insteam/logic/notifications.py

from typing import Iterable, List, Optional
from sqlalchemy.orm import Session

from insteam import models
from insteam.core.time_policy import _utcnow
from insteam.errors import NotFoundError, PermissionDenied

NOTIFICATION_TYPES = ("info", "success", "warning", "error")
ADMIN_NOTIFICATION_TYPES = ("manual_charge_request", "system_alert", "user_issue")


def create_notification(
    db: Session,
    *,
    user_id: int,
    title: str,
    message: str,
    type: str = "info",
    action_url: Optional[str] = None,
    auto_commit: bool = True,
) -> models.Notification:
    """
    단일 사용자 알림 생성 헬퍼.
    """
    if type not in NOTIFICATION_TYPES:
        type = "info"
    notif = models.Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type,
        action_url=action_url,
        is_read=False,
        created_at=_utcnow(),
    )
    db.add(notif)
    if auto_commit:
        db.commit()
        db.refresh(notif)
    return notif


def create_notifications_bulk(
    db: Session,
    *,
    user_ids: Iterable[int],
    title: str,
    message: str,
    type: str = "info",
    action_url: Optional[str] = None,
) -> None:
    """
    여러 유저에게 같은 알림을 뿌릴 때 사용 (예: 채팅 메시지 수신자 전원).
    commit 은 호출자 책임.
    """
    for uid in set(user_ids):
        create_notification(
            db, user_id=uid, title=title, message=message,
            type=type, action_url=action_url, auto_commit=False,
        )


def get_notifications(db: Session, user_id: int, *, unread_only: bool = False, limit: int = 100) -> List[models.Notification]:
    q = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if unread_only:
        q = q.filter(models.Notification.is_read.is_(False))
    return q.order_by(models.Notification.created_at.desc(), models.Notification.id.desc()).limit(limit).all()


def get_unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.is_read.is_(False))
        .count()
    )


def mark_as_read(db: Session, notification_id: int, user_id: int) -> models.Notification:
    notif = db.get(models.Notification, notification_id)
    if not notif:
        raise NotFoundError(f"Notification not found: {notification_id}")
    if notif.user_id != user_id:
        raise PermissionDenied("not your notification")
    notif.is_read = True
    db.commit()
    db.refresh(notif)
    return notif


def mark_all_as_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(models.Notification)
        .filter(models.Notification.user_id == user_id, models.Notification.is_read.is_(False))
        .update({models.Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return int(updated or 0)


# ---------------------------------------------------------------------
# 관리자 알림
# ---------------------------------------------------------------------
def create_admin_notification(
    db: Session,
    *,
    type: str,
    title: str,
    message: str,
    user_id: Optional[int] = None,
    user_name: Optional[str] = None,
    amount: Optional[int] = None,
    action_url: Optional[str] = None,
    auto_commit: bool = True,
) -> models.AdminNotification:
    if type not in ADMIN_NOTIFICATION_TYPES:
        raise ValueError(f"unknown admin notification type: {type}")
    notif = models.AdminNotification(
        type=type,
        title=title,
        message=message,
        user_id=user_id,
        user_name=user_name,
        amount=amount,
        action_url=action_url,
        is_read=False,
        created_at=_utcnow(),
    )
    db.add(notif)
    if auto_commit:
        db.commit()
        db.refresh(notif)
    return notif


def get_admin_notifications(db: Session, *, unread_only: bool = False, limit: int = 100) -> List[models.AdminNotification]:
    q = db.query(models.AdminNotification)
    if unread_only:
        q = q.filter(models.AdminNotification.is_read.is_(False))
    return q.order_by(models.AdminNotification.created_at.desc(), models.AdminNotification.id.desc()).limit(limit).all()


def mark_admin_notification_read(db: Session, notification_id: int, admin_id: int) -> models.AdminNotification:
    notif = db.get(models.AdminNotification, notification_id)
    if not notif:
        raise NotFoundError(f"AdminNotification not found: {notification_id}")
    notif.is_read = True
    notif.read_by = admin_id
    notif.read_at = _utcnow()
    db.commit()
    db.refresh(notif)
    return notif
