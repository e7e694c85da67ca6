from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from mahattati.core.database import get_db
from mahattati.core.exceptions import InvalidToken, Unauthenticated
from mahattati.core.permissions import Action, ensure_allowed
from mahattati.core.security import verify_token
from mahattati.models.user import User

# OAuth2 password bearer scheme - extracts token from Authorization header
# auto_error=False so a missing header reaches our own 401 below
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)


async def get_current_user(
    token: str | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from the bearer token.

    Every request re-verifies the token and re-reads the user, so role and
    verification changes apply immediately. Missing, invalid or expired
    tokens and deleted users all end in the same 401.
    """
    if token is None:
        raise Unauthenticated()

    try:
        payload = verify_token(token)
    except InvalidToken:
        raise Unauthenticated()

    # Token stores ID as string, but database uses integer
    try:
        user_id = int(payload.get("sub"))
    except (ValueError, TypeError):
        raise Unauthenticated()

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise Unauthenticated()

    return user


def require_permission(action: Action):
    """
    Dependency factory for the route-level role gate.

    Ownership is not known yet at this point; services re-check the same
    action with is_owner once the resource is loaded.
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        ensure_allowed(current_user, action)
        return current_user

    return dependency
