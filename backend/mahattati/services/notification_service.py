from typing import Optional
from sqlalchemy.orm import Session
from mahattati.models.notification import Notification


class NotificationService:
    @staticmethod
    def notify(
        db: Session,
        user_id: int,
        type: str,
        title: str,
        title_ar: str,
        message: str,
        message_ar: str,
        link_url: Optional[str] = None,
    ) -> Notification:
        """Queue a bilingual notification on the session; the caller commits"""
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            title_ar=title_ar,
            message=message,
            message_ar=message_ar,
            link_url=link_url,
        )
        db.add(notification)
        return notification

    @staticmethod
    def notify_comment(db: Session, owner_id: int, commenter_name: str, ad_id: int) -> Notification:
        return NotificationService.notify(
            db,
            owner_id,
            "comment",
            "New Comment",
            "تعليق جديد",
            f"{commenter_name} commented on your ad",
            f"علق {commenter_name} على إعلانك",
            f"/ads/{ad_id}",
        )

    @staticmethod
    def notify_message(db: Session, receiver_id: int, sender_name: str, sender_id: int) -> Notification:
        return NotificationService.notify(
            db,
            receiver_id,
            "message",
            "New Message",
            "رسالة جديدة",
            f"You have a new message from {sender_name}",
            f"لديك رسالة جديدة من {sender_name}",
            f"/messages/{sender_id}",
        )


notification_service = NotificationService()
