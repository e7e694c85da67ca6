import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from jose import JWTError, jwt
from passlib.context import CryptContext
from mahattati.core.config import settings
from mahattati.core.exceptions import InvalidToken

# bcrypt salts every hash, so equal passwords never produce equal hashes
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Token purposes - a token issued for one purpose never verifies for another
SESSION = "session"
EMAIL_VERIFICATION = "email_verification"
PASSWORD_RESET = "password_reset"

# Purposes whose tokens are also stored on the user row and cleared after use
SINGLE_USE_PURPOSES = {EMAIL_VERIFICATION, PASSWORD_RESET}


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash using constant-time comparison"""
    if not plain_password or not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt"""
    return pwd_context.hash(password)


def issue_token(payload: dict[str, Any], ttl: timedelta, purpose: str = SESSION) -> str:
    """Sign a payload into a JWT that expires after ttl"""
    # Copy data to avoid mutating the original dict
    to_encode = payload.copy()
    now = datetime.now(timezone.utc)
    to_encode.update({"exp": now + ttl, "iat": now, "purpose": purpose})
    if purpose in SINGLE_USE_PURPOSES:
        # Two tokens issued in the same second must still differ
        to_encode["jti"] = uuid.uuid4().hex
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def verify_token(token: str, purpose: str = SESSION) -> dict[str, Any]:
    """
    Decode and verify a JWT.

    Raises InvalidToken if the signature does not match, the token expired,
    or it was issued for a different purpose.
    """
    if not token:
        raise InvalidToken()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise InvalidToken()
    if payload.get("purpose") != purpose:
        raise InvalidToken()
    return payload


def create_access_token(user_id: int) -> str:
    """Session token carrying the user id in the standard 'sub' claim"""
    return issue_token(
        {"sub": str(user_id)},
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_verification_token(email: str) -> str:
    return issue_token(
        {"email": email},
        timedelta(hours=settings.VERIFICATION_TOKEN_EXPIRE_HOURS),
        purpose=EMAIL_VERIFICATION,
    )


def create_reset_token(user_id: int) -> str:
    return issue_token(
        {"sub": str(user_id)},
        timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES),
        purpose=PASSWORD_RESET,
    )
