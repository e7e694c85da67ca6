"""
Role/action permission matrix.

Routes apply the role gate before the resource is loaded (is_owner=None);
services apply it again with the ownership result once the row is known.
"""
from enum import Enum
from typing import Optional
from mahattati.core.exceptions import Forbidden


class Role(str, Enum):
    ADVERTISER = "advertiser"
    SUBSCRIBER = "subscriber"
    SYSTEM_MANAGER = "system_manager"
    MARKETING_MANAGER = "marketing_manager"


# Roles a visitor may pick for themselves at registration
SELF_REGISTER_ROLES = (Role.ADVERTISER, Role.SUBSCRIBER)


class Action(str, Enum):
    AD_CREATE = "ad:create"
    AD_LIST = "ad:list"
    AD_READ = "ad:read"
    AD_UPDATE = "ad:update"
    AD_DELETE = "ad:delete"
    COMMENT_CREATE = "comment:create"
    COMMENT_DELETE = "comment:delete"
    MESSAGE_SEND = "message:send"
    SUBSCRIPTION_MANAGE = "subscription:manage"
    PAYMENT_CREATE = "payment:create"
    BLOG_CREATE = "blog:create"
    BLOG_UPDATE = "blog:update"
    SPONSORED_AD_MANAGE = "sponsored_ad:manage"
    NEWS_TICKER_MANAGE = "news_ticker:manage"
    USER_ADMINISTER = "user:administer"
    REPORT_VIEW = "report:view"
    LOG_VIEW = "log:view"


_EVERYONE = frozenset(Role)
_MANAGERS = frozenset({Role.SYSTEM_MANAGER, Role.MARKETING_MANAGER})

PERMISSIONS: dict[Action, frozenset[Role]] = {
    Action.AD_CREATE: frozenset({Role.ADVERTISER}),
    Action.AD_LIST: _EVERYONE,
    Action.AD_READ: _EVERYONE,
    Action.AD_UPDATE: frozenset({Role.ADVERTISER}),
    Action.AD_DELETE: frozenset({Role.ADVERTISER}),
    Action.COMMENT_CREATE: _EVERYONE,
    Action.COMMENT_DELETE: _EVERYONE,
    Action.MESSAGE_SEND: _EVERYONE,
    Action.SUBSCRIPTION_MANAGE: frozenset({Role.SUBSCRIBER}),
    Action.PAYMENT_CREATE: _EVERYONE,
    Action.BLOG_CREATE: _MANAGERS,
    Action.BLOG_UPDATE: _MANAGERS,
    Action.SPONSORED_AD_MANAGE: _MANAGERS,
    Action.NEWS_TICKER_MANAGE: _MANAGERS,
    Action.USER_ADMINISTER: frozenset({Role.SYSTEM_MANAGER}),
    Action.REPORT_VIEW: frozenset({Role.SYSTEM_MANAGER}),
    Action.LOG_VIEW: frozenset({Role.SYSTEM_MANAGER}),
}

# Actions that additionally require the caller to own the resource
OWNERSHIP_REQUIRED = frozenset({
    Action.AD_UPDATE,
    Action.AD_DELETE,
    Action.COMMENT_DELETE,
    Action.BLOG_UPDATE,
})


def parse_role(value) -> Optional[Role]:
    """Role for a stored value, or None for anything outside the closed set"""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return None


def is_allowed(role, action: Action, is_owner: Optional[bool] = None) -> bool:
    """
    Decide allow/deny for (role, action, ownership).

    is_owner=None means ownership has not been evaluated yet, so only the
    role gate applies.
    """
    role = parse_role(role)
    if role is None or role not in PERMISSIONS[action]:
        return False
    if action in OWNERSHIP_REQUIRED and is_owner is not None:
        return is_owner
    return True


def ensure_allowed(user, action: Action, is_owner: Optional[bool] = None,
                   message: Optional[str] = None) -> None:
    """Raise Forbidden unless the user may perform the action"""
    if not is_allowed(user.role, action, is_owner):
        raise Forbidden(message or "Not authorized to perform this action")
