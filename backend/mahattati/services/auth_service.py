import logging
from datetime import timedelta
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from mahattati.core.config import settings
from mahattati.core.exceptions import (
    Conflict,
    InvalidToken,
    TokenAlreadyUsedOrRevoked,
    Unauthenticated,
    ValidationError,
)
from mahattati.core.security import (
    EMAIL_VERIFICATION,
    PASSWORD_RESET,
    create_access_token,
    create_reset_token,
    create_verification_token,
    get_password_hash,
    verify_password,
    verify_token,
)
from mahattati.models.user import User
from mahattati.utils.dates import as_utc, utcnow

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
INVALID_VERIFICATION_MESSAGE = "Invalid or expired verification token"
INVALID_RESET_MESSAGE = "Invalid or expired reset token"


def normalize_email(email: str) -> str:
    return email.strip().lower()


class AuthService:
    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == normalize_email(email)).first()

    @staticmethod
    def register(
        db: Session,
        name: str,
        email: str,
        password: str,
        role: str,
        phone: Optional[str] = None,
        company_name: Optional[str] = None,
    ) -> tuple[User, str]:
        """Create an unverified user and return it with a session token"""
        if not name.strip():
            raise ValidationError.for_field("name", "Name is required")
        email = normalize_email(email)
        if AuthService.get_user_by_email(db, email):
            raise Conflict("User already exists with this email")

        user = User(
            name=name.strip(),
            email=email,
            hashed_password=get_password_hash(password),
            role=role,
            phone=phone or None,
            company_name=company_name or None,
            email_verified=False,
            verification_token=create_verification_token(email),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # Two registrations raced past the lookup above
            db.rollback()
            raise Conflict("User already exists with this email")
        db.refresh(user)

        logger.info("Registered %s user %s", role, user.id)
        return user, create_access_token(user.id)

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> tuple[User, str]:
        """Check credentials; the same 401 covers unknown email and wrong password"""
        user = AuthService.get_user_by_email(db, email)
        if not user or not verify_password(password, user.hashed_password):
            raise Unauthenticated(INVALID_CREDENTIALS_MESSAGE)
        return user, create_access_token(user.id)

    @staticmethod
    def verify_email(db: Session, token: str) -> User:
        try:
            payload = verify_token(token, purpose=EMAIL_VERIFICATION)
        except InvalidToken:
            raise InvalidToken(INVALID_VERIFICATION_MESSAGE)

        user = db.query(User).filter(
            User.email == payload.get("email"),
            User.verification_token == token,
        ).first()
        if user is None:
            raise TokenAlreadyUsedOrRevoked(INVALID_VERIFICATION_MESSAGE)

        user.email_verified = True
        user.verification_token = None
        db.commit()
        return user

    @staticmethod
    def request_password_reset(db: Session, email: str) -> Optional[tuple[User, str]]:
        """
        Store a fresh reset token for the user.

        Returns None for unknown emails; callers must answer identically
        either way.
        """
        user = AuthService.get_user_by_email(db, email)
        if user is None:
            return None

        token = create_reset_token(user.id)
        user.reset_password_token = token
        user.reset_password_expires = utcnow() + timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
        db.commit()
        return user, token

    @staticmethod
    def reset_password(db: Session, token: str, new_password: str) -> User:
        try:
            payload = verify_token(token, purpose=PASSWORD_RESET)
            user_id = int(payload.get("sub"))
        except (InvalidToken, TypeError, ValueError):
            raise InvalidToken(INVALID_RESET_MESSAGE)

        user = db.query(User).filter(User.id == user_id).first()
        # A token that verifies but is no longer the stored one was used or superseded
        if (
            user is None
            or user.reset_password_token != token
            or user.reset_password_expires is None
            or as_utc(user.reset_password_expires) <= utcnow()
        ):
            raise TokenAlreadyUsedOrRevoked(INVALID_RESET_MESSAGE)

        user.hashed_password = get_password_hash(new_password)
        user.reset_password_token = None
        user.reset_password_expires = None
        db.commit()
        logger.info("Password reset for user %s", user.id)
        return user

    @staticmethod
    def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.hashed_password):
            raise ValidationError.for_field("current_password", "Current password is incorrect")
        user.hashed_password = get_password_hash(new_password)
        db.commit()


auth_service = AuthService()
