from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean
from sqlalchemy.sql import func
from mahattati.core.database import Base


class SponsoredAd(Base):
    """Paid banner placement, shown by position - distinct from Ad"""
    __tablename__ = "sponsored_ads"

    id = Column(Integer, primary_key=True, index=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String, nullable=True)
    media_url = Column(String, nullable=False)
    media_type = Column(String, nullable=False)  # image, video
    position = Column(String, nullable=False, index=True)  # top_banner, left_sidebar, right_sidebar
    link_url = Column(String, nullable=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
