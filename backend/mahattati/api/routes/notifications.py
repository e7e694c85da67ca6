from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, field_serializer
from sqlalchemy.orm import Session
from mahattati.api.dependencies import get_current_user
from mahattati.core.database import get_db
from mahattati.core.exceptions import NotFound
from mahattati.models.notification import Notification
from mahattati.models.user import User

router = APIRouter(prefix="/notifications", tags=["notifications"])

MAX_NOTIFICATIONS = 50


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    title_ar: Optional[str] = None
    message: str
    message_ar: Optional[str] = None
    link_url: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer('created_at')
    def serialize_created_at(self, value: Optional[datetime], _info):
        return value.isoformat() if value else None


@router.get("")
async def list_notifications(
    unread_only: bool = Query(False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """The caller's latest notifications, newest first"""
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    notifications = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(MAX_NOTIFICATIONS)
        .all()
    )
    return {"notifications": [NotificationResponse.model_validate(n) for n in notifications]}


@router.put("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False),
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return {"message": "All notifications marked as read"}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Mark one of the caller's notifications as read"""
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == current_user.id,
    ).first()
    if notification is None:
        raise NotFound("Notification not found")

    notification.is_read = True
    db.commit()
    return {"message": "Notification marked as read"}
