from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, JSON
from sqlalchemy.sql import func
from mahattati.core.database import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency = Column(String(3), nullable=False, default="SAR")
    gateway = Column(String, nullable=False, default="stripe")
    payment_type = Column(String, nullable=False)  # ad_promotion, subscription, ad_upload
    status = Column(String, nullable=False, default="pending")  # pending, completed, failed
    transaction_id = Column(String, nullable=True, index=True)
    # "metadata" is reserved on declarative classes, so the attribute is renamed
    payment_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
