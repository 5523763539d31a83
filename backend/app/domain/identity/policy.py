"""Validation guards and rate limits for identity flows."""

from __future__ import annotations

from typing import Optional

import asyncpg

from app.domain.identity.exceptions import IdentityInvalid, IdentityRateLimitExceeded, SignupConflict
from app.domain.identity.models import (
	MIN_USERNAME_LENGTH,
	MSG_EMAIL_TAKEN,
	MSG_PARENT_EMAIL_REQUIRED,
	MSG_USERNAME_TAKEN,
	MSG_USERNAME_TOO_SHORT,
	is_email,
	normalise_identifier,
)
from app.infra import rate_limit
from app.infra.password import MIN_PASSWORD_LENGTH
from app.settings import settings


def guard_password(password: str | None) -> None:
	if not password or len(password) < MIN_PASSWORD_LENGTH:
		raise IdentityInvalid(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def guard_username(username: str) -> None:
	if len(username) < MIN_USERNAME_LENGTH:
		raise IdentityInvalid(MSG_USERNAME_TOO_SHORT)


def signup_target(identifier: str, parent_email: Optional[str]) -> tuple[Optional[str], Optional[str], str]:
	"""Return (email, username, otp_recipient) for a signup identifier.

	Username signups have no email of their own; the OTP goes to the parent.
	"""
	value = normalise_identifier(identifier)
	if is_email(value):
		return value, None, value
	guard_username(value)
	if not parent_email or not parent_email.strip():
		raise IdentityInvalid(MSG_PARENT_EMAIL_REQUIRED)
	return None, value, normalise_identifier(parent_email)


async def ensure_available(conn: asyncpg.Connection, *, email: Optional[str], username: Optional[str]) -> None:
	if email and await conn.fetchval("SELECT 1 FROM users WHERE LOWER(email) = $1", email):
		raise SignupConflict(MSG_EMAIL_TAKEN)
	if username and await conn.fetchval("SELECT 1 FROM users WHERE LOWER(username) = $1", username):
		raise SignupConflict(MSG_USERNAME_TAKEN)


async def is_deleted_account(conn: asyncpg.Connection, identifier: str) -> bool:
	return bool(
		await conn.fetchval(
			"""
			SELECT 1 FROM deleted_accounts
			WHERE LOWER(email) = $1 OR LOWER(username) = $1
			LIMIT 1
			""",
			identifier,
		)
	)


async def enforce_login_rate(identifier: str) -> None:
	if not await rate_limit.allow("login", identifier, limit=settings.login_attempts_per_minute, window_seconds=60):
		raise IdentityRateLimitExceeded("login_rate_limited")


async def enforce_otp_request_rate(recipient: str) -> None:
	if not await rate_limit.allow("otp", recipient, limit=settings.otp_requests_per_hour, window_seconds=3600):
		raise IdentityRateLimitExceeded("otp_rate_limited")
