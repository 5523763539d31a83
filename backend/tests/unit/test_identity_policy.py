from unittest.mock import AsyncMock, MagicMock

import pytest

from app.domain.identity import policy
from app.domain.identity.exceptions import IdentityInvalid, IdentityRateLimitExceeded, SignupConflict
from app.domain.identity.models import MSG_PARENT_EMAIL_REQUIRED, MSG_USERNAME_TAKEN, MSG_USERNAME_TOO_SHORT, is_email
from app.settings import settings


def test_email_signup_targets_itself():
    assert policy.signup_target("  Jane@Example.COM ", None) == ("jane@example.com", None, "jane@example.com")


def test_username_signup_mails_parent():
    assert policy.signup_target("KidAthlete", "Mom@Example.com") == (None, "kidathlete", "mom@example.com")


def test_username_signup_requires_parent_email():
    with pytest.raises(IdentityInvalid) as exc:
        policy.signup_target("kidathlete", None)
    assert exc.value.reason == MSG_PARENT_EMAIL_REQUIRED


def test_short_username_rejected():
    with pytest.raises(IdentityInvalid) as exc:
        policy.signup_target("kid", "mom@example.com")
    assert exc.value.reason == MSG_USERNAME_TOO_SHORT
    assert exc.value.status_code == 400


def test_password_length_guard():
    with pytest.raises(IdentityInvalid):
        policy.guard_password("short")
    policy.guard_password("long-enough")


def test_is_email():
    assert is_email("a@b.co")
    assert not is_email("username")
    assert not is_email(None)


@pytest.mark.asyncio
async def test_ensure_available_rejects_taken_username():
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=1)
    with pytest.raises(SignupConflict) as exc:
        await policy.ensure_available(conn, email=None, username="kidathlete")
    assert exc.value.reason == MSG_USERNAME_TAKEN
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_login_rate_limit(monkeypatch):
    monkeypatch.setattr(settings, "login_attempts_per_minute", 1)
    await policy.enforce_login_rate("jane@example.com")
    with pytest.raises(IdentityRateLimitExceeded):
        await policy.enforce_login_rate("jane@example.com")
