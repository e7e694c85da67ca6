from enum import Enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Float, Boolean, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from mahattati.core.database import Base


class AdStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Ad(Base):
    """
    A fuel-station listing owned by one advertiser.

    user_id never changes after creation; images are stored on disk and
    referenced here by their public URL path.
    """
    __tablename__ = "ads"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    location_latitude = Column(Float, nullable=False)
    location_longitude = Column(Float, nullable=False)
    address = Column(String, nullable=True)
    city = Column(String, nullable=True, index=True)
    region = Column(String, nullable=True, index=True)
    facilities = Column(JSON, nullable=True)
    fuel_types = Column(JSON, nullable=True)
    images = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default=AdStatus.DRAFT.value, index=True)
    views_count = Column(Integer, nullable=False, default=0)
    is_promoted = Column(Boolean, nullable=False, default=False)
    promotion_type = Column(String, nullable=True)
    promotion_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", backref="ads")
