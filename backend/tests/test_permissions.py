from types import SimpleNamespace

import pytest

from mahattati.core.exceptions import Forbidden
from mahattati.core.permissions import Action, Role, ensure_allowed, is_allowed, parse_role


def test_only_advertisers_write_ads():
    for action in (Action.AD_CREATE, Action.AD_UPDATE, Action.AD_DELETE):
        assert is_allowed(Role.ADVERTISER, action)
        assert not is_allowed(Role.SUBSCRIBER, action)
        assert not is_allowed(Role.SYSTEM_MANAGER, action)
        assert not is_allowed(Role.MARKETING_MANAGER, action)


def test_everyone_reads_ads():
    for role in Role:
        assert is_allowed(role, Action.AD_LIST)
        assert is_allowed(role, Action.AD_READ)


def test_ownership_decides_once_known():
    assert is_allowed("advertiser", Action.AD_UPDATE, is_owner=True)
    assert not is_allowed("advertiser", Action.AD_UPDATE, is_owner=False)
    # Ownership never rescues the wrong role
    assert not is_allowed("subscriber", Action.AD_UPDATE, is_owner=True)


def test_system_manager_has_no_ad_ownership_bypass():
    assert not is_allowed(Role.SYSTEM_MANAGER, Action.AD_DELETE, is_owner=False)
    assert is_allowed(Role.SYSTEM_MANAGER, Action.USER_ADMINISTER)


def test_ownership_ignored_for_unowned_actions():
    assert is_allowed(Role.SUBSCRIBER, Action.COMMENT_CREATE, is_owner=False)


def test_manager_only_actions():
    assert is_allowed(Role.MARKETING_MANAGER, Action.SPONSORED_AD_MANAGE)
    assert is_allowed(Role.MARKETING_MANAGER, Action.BLOG_CREATE)
    assert not is_allowed(Role.MARKETING_MANAGER, Action.USER_ADMINISTER)
    assert not is_allowed(Role.ADVERTISER, Action.NEWS_TICKER_MANAGE)


def test_unknown_role_is_denied_everything():
    assert parse_role("superuser") is None
    for action in Action:
        assert not is_allowed("superuser", action)


def test_ensure_allowed_raises_forbidden():
    user = SimpleNamespace(role="subscriber")
    with pytest.raises(Forbidden) as exc_info:
        ensure_allowed(user, Action.AD_CREATE, message="Nope")
    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "Nope"
    ensure_allowed(user, Action.AD_READ)
