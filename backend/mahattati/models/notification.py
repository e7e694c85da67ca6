from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean
from sqlalchemy.sql import func
from mahattati.core.database import Base


class Notification(Base):
    """In-app notification; title and message are kept in both languages"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, nullable=False)  # comment, message, ...
    title = Column(String, nullable=False)
    title_ar = Column(String, nullable=True)
    message = Column(Text, nullable=False)
    message_ar = Column(Text, nullable=True)
    link_url = Column(String, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
