# insteam/routers/chat.py
from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from insteam import crud, database, models, schemas
from insteam.logic import chat
from insteam.models import UserRole
from insteam.routers.common import _translate_error
from insteam.security import get_current_user

router = APIRouter(prefix="/chat", tags=["chat"])
get_db = database.get_db


def _room_out(room: models.ChatRoom, unread: int = 0) -> schemas.ChatRoomOut:
    out = schemas.ChatRoomOut.model_validate(room)
    out.unread_count = unread
    return out


@router.get("/rooms", response_model=List[schemas.ChatRoomOut])
def my_rooms(db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    return [_room_out(room, unread) for room, unread in chat.get_user_chat_rooms(db, user.id)]


@router.post("/jobs/{job_id}/room", response_model=schemas.ChatRoomOut)
def open_room(job_id: str, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    """작업 채팅방 조회/생성 (판매자, 담당 시공자, 관리자)"""
    try:
        job = crud.get_job(db, job_id)
        if user.role != UserRole.ADMIN.value and user.id not in (job.seller_id, job.contractor_id):
            raise HTTPException(status_code=403, detail="not a participant of this job")
        room = chat.get_or_create_chat_room(db, job.id, [job.seller_id, job.contractor_id, user.id])
        return _room_out(room)
    except Exception as e:
        _translate_error(e)


@router.get("/rooms/{room_id}/messages", response_model=List[schemas.ChatMessageOut])
def messages(room_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    try:
        return chat.get_messages(db, room_id, user)
    except Exception as e:
        _translate_error(e)


@router.post("/rooms/{room_id}/messages", response_model=schemas.ChatMessageOut, status_code=status.HTTP_201_CREATED)
def send(
    room_id: int,
    body: schemas.ChatMessageIn = Body(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    try:
        return chat.send_message(
            db, room_id, user, body.content, message_type=body.message_type, image_url=body.image_url,
        )
    except Exception as e:
        _translate_error(e)


@router.post("/messages/{message_id}/read", response_model=schemas.ChatMessageOut)
def read_message(message_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    try:
        return chat.mark_message_as_read(db, message_id, user)
    except Exception as e:
        _translate_error(e)


@router.post("/rooms/{room_id}/read")
def read_room(room_id: int, db: Session = Depends(get_db), user: models.User = Depends(get_current_user)):
    try:
        return {"marked": chat.mark_room_as_read(db, room_id, user)}
    except Exception as e:
        _translate_error(e)
