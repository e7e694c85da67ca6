from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.sql import func
from mahattati.core.database import Base


class NewsTickerItem(Base):
    __tablename__ = "news_ticker"

    id = Column(Integer, primary_key=True, index=True)
    content = Column(String, nullable=False)
    content_ar = Column(String, nullable=True)
    link_url = Column(String, nullable=True)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
