from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from mahattati.core.database import Base


class User(Base):
    """
    Identity and credential record.

    Emails are stored lower-cased so the unique index is case-insensitive.
    Passwords are stored as bcrypt hashes, never plaintext.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    # One of mahattati.core.permissions.Role; only admins change it after registration
    role = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=True)
    company_name = Column(String, nullable=True)
    profile_image = Column(String, nullable=True)
    language_preference = Column(String, nullable=False, default="ar")
    email_verified = Column(Boolean, nullable=False, default=False)
    # Single-use tokens - cleared once consumed
    verification_token = Column(String, nullable=True)
    reset_password_token = Column(String, nullable=True)
    reset_password_expires = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
