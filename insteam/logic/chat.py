# insteam/logic/chat.py
# 작업별 채팅방 (작업 1건 = 방 1개)
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from insteam import models
from insteam.core.time_policy import _utcnow
from insteam.errors import NotFoundError, PermissionDenied, PolicyViolation
from insteam.logic import notifications as N
from insteam.models import UserRole

logger = logging.getLogger(__name__)


def get_room_for_job(db: Session, job_id: str) -> Optional[models.ChatRoom]:
    return db.query(models.ChatRoom).filter(models.ChatRoom.job_id == job_id).first()


def get_room(db: Session, room_id: int) -> models.ChatRoom:
    room = db.get(models.ChatRoom, room_id)
    if not room:
        raise NotFoundError(f"ChatRoom not found: {room_id}")
    return room


def get_or_create_chat_room(
    db: Session, job_id: str, participants: Iterable[int], *, auto_commit: bool = True,
) -> models.ChatRoom:
    wanted = [int(p) for p in participants if p is not None]
    room = get_room_for_job(db, job_id)
    if room is None:
        room = models.ChatRoom(job_id=job_id, participants=sorted(set(wanted)), created_at=_utcnow())
        db.add(room)
    else:
        merged = sorted(set(room.participants or []) | set(wanted))
        if merged != list(room.participants or []):
            room.participants = merged
    db.flush()
    if auto_commit:
        db.commit()
        db.refresh(room)
    return room


def _require_member(room: models.ChatRoom, user: models.User) -> None:
    if user.role == UserRole.ADMIN.value:
        return
    if user.id not in (room.participants or []):
        raise PermissionDenied("not a participant of this chat room")


def send_message(
    db: Session,
    room_id: int,
    sender: models.User,
    content: str,
    *,
    message_type: str = "text",
    image_url: Optional[str] = None,
) -> models.ChatMessage:
    room = get_room(db, room_id)
    _require_member(room, sender)
    if message_type not in ("text", "image"):
        raise PolicyViolation(f"unknown message_type: {message_type}")
    if message_type == "image" and not image_url:
        raise PolicyViolation("image message requires image_url")

    now = _utcnow()
    msg = models.ChatMessage(
        room_id=room.id,
        sender_id=sender.id,
        sender_name=sender.name,
        sender_role=sender.role,
        content=content,
        message_type=message_type,
        image_url=image_url,
        read_by=[sender.id],
        created_at=now,
    )
    db.add(msg)
    room.last_message = content if message_type == "text" else "[이미지]"
    room.last_message_at = now

    others = [uid for uid in (room.participants or []) if uid != sender.id]
    N.create_notifications_bulk(
        db,
        user_ids=others,
        title="새 메시지",
        message=f"{sender.name}: {room.last_message}",
        type="info",
        action_url=f"/chat/{room.id}",
    )
    db.commit()
    db.refresh(msg)
    return msg


def get_messages(db: Session, room_id: int, user: models.User) -> List[models.ChatMessage]:
    room = get_room(db, room_id)
    _require_member(room, user)
    return (
        db.query(models.ChatMessage)
        .filter(models.ChatMessage.room_id == room.id)
        .order_by(models.ChatMessage.created_at.asc(), models.ChatMessage.id.asc())
        .all()
    )


def mark_message_as_read(db: Session, message_id: int, user: models.User) -> models.ChatMessage:
    msg = db.get(models.ChatMessage, message_id)
    if not msg:
        raise NotFoundError(f"ChatMessage not found: {message_id}")
    _require_member(get_room(db, msg.room_id), user)
    read_by = list(msg.read_by or [])
    if user.id not in read_by:
        # JSON 컬럼은 새 리스트를 대입해야 변경이 감지된다
        msg.read_by = read_by + [user.id]
        db.commit()
        db.refresh(msg)
    return msg


def mark_room_as_read(db: Session, room_id: int, user: models.User) -> int:
    room = get_room(db, room_id)
    _require_member(room, user)
    marked = 0
    for msg in db.query(models.ChatMessage).filter(models.ChatMessage.room_id == room.id).all():
        read_by = list(msg.read_by or [])
        if user.id not in read_by:
            msg.read_by = read_by + [user.id]
            marked += 1
    db.commit()
    return marked


def _unread_count(db: Session, room_id: int, user_id: int) -> int:
    msgs = (
        db.query(models.ChatMessage)
        .filter(models.ChatMessage.room_id == room_id, models.ChatMessage.sender_id != user_id)
        .all()
    )
    return sum(1 for m in msgs if user_id not in (m.read_by or []))


def get_user_chat_rooms(db: Session, user_id: int) -> List[Tuple[models.ChatRoom, int]]:
    """참여 중인 방 목록 (최근 메시지 순) + 방별 안 읽은 메시지 수."""
    rooms = [r for r in db.query(models.ChatRoom).all() if user_id in (r.participants or [])]
    rooms.sort(key=lambda r: (r.last_message_at or r.created_at), reverse=True)
    return [(r, _unread_count(db, r.id, user_id)) for r in rooms]
