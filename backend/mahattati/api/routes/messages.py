from datetime import datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, status
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session
from mahattati.api.dependencies import get_current_user, require_permission
from mahattati.core.database import get_db
from mahattati.core.exceptions import NotFound, ValidationError
from mahattati.core.permissions import Action
from mahattati.models.message import Message
from mahattati.models.user import User
from mahattati.services.ad_service import ad_service
from mahattati.services.email_service import email_service
from mahattati.services.notification_service import notification_service

router = APIRouter(prefix="/messages", tags=["messages"])


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(min_length=1)
    ad_id: Optional[int] = None


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    ad_id: Optional[int] = None
    content: str
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    data: MessageCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_permission(Action.MESSAGE_SEND)),
    db: Session = Depends(get_db)
):
    """Send a direct message; the receiver is notified in-app and by email"""
    content = data.content.strip()
    if not content:
        raise ValidationError.for_field("content", "Message content is required")
    if data.receiver_id == current_user.id:
        raise ValidationError.for_field("receiver_id", "Cannot send a message to yourself")

    receiver = db.query(User).filter(User.id == data.receiver_id).first()
    if receiver is None:
        raise NotFound("Receiver not found")
    if data.ad_id is not None:
        ad_service.find_commentable(db, current_user, data.ad_id)

    message = Message(
        sender_id=current_user.id,
        receiver_id=receiver.id,
        ad_id=data.ad_id,
        content=content,
        is_read=False,
    )
    db.add(message)
    notification = notification_service.notify_message(db, receiver.id, current_user.name, current_user.id)
    db.commit()
    db.refresh(message)

    background_tasks.add_task(
        email_service.send_notification_email,
        receiver.email,
        receiver.name,
        notification.title,
        notification.message,
        notification.link_url,
    )

    return {"message": "Message sent successfully", "data": MessageResponse.model_validate(message)}


@router.get("")
async def list_conversations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """One entry per conversation partner, most recent conversation first"""
    me = current_user.id
    messages = (
        db.query(Message)
        .filter(or_(Message.sender_id == me, Message.receiver_id == me))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .all()
    )

    conversations = {}
    for message in messages:
        other = message.receiver if message.sender_id == me else message.sender
        if other.id not in conversations:
            # Newest first, so the first message seen is the last one sent
            conversations[other.id] = {
                "other_user_id": other.id,
                "other_user_name": other.name,
                "other_user_image": other.profile_image,
                "last_message": message.content,
                "last_message_time": message.created_at.isoformat() if message.created_at else None,
                "unread_count": 0,
            }
        if message.receiver_id == me and not message.is_read:
            conversations[other.id]["unread_count"] += 1

    return {"conversations": list(conversations.values())}


@router.get("/{user_id}")
async def get_conversation(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Full thread with one user, oldest first; received messages become read"""
    me = current_user.id
    messages = (
        db.query(Message)
        .filter(
            or_(
                and_(Message.sender_id == me, Message.receiver_id == user_id),
                and_(Message.sender_id == user_id, Message.receiver_id == me),
            )
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    response = [MessageResponse.model_validate(m) for m in messages]

    marked = db.query(Message).filter(
        Message.sender_id == user_id,
        Message.receiver_id == me,
        Message.is_read.is_(False),
    ).update({Message.is_read: True}, synchronize_session=False)
    if marked:
        db.commit()

    return {"messages": response}
