"""Google sign-in: find, link or create an account from Google profile fields."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

import asyncpg

from app.domain.identity import models, schemas, sessions
from app.domain.identity.exceptions import AccountDeleted, IdentityInvalid, UserNotFound
from app.domain.identity.models import GOOGLE_USER_TYPES, normalise_identifier
from app.domain.identity.policy import is_deleted_account
from app.infra.postgres import get_pool
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


async def _find_or_link(
	conn: asyncpg.Connection,
	payload: schemas.GoogleSignIn,
) -> tuple[models.User, str]:
	email = normalise_identifier(str(payload.email))
	row = await conn.fetchrow("SELECT * FROM users WHERE google_id = $1", payload.google_id)
	if row:
		return models.User.from_record(row), "existing"

	row = await conn.fetchrow("SELECT * FROM users WHERE LOWER(email) = $1", email)
	if row:
		# an uploaded avatar wins over the Google picture
		linked = await conn.fetchrow(
			"""
			UPDATE users
			SET google_id = $1,
				profile_url = COALESCE(profile_url, $2),
				email_verified = TRUE,
				updated_at = NOW()
			WHERE id = $3
			RETURNING *
			""",
			payload.google_id,
			payload.profile_picture,
			row["id"],
		)
		return models.User.from_record(linked), "linked"

	created = await conn.fetchrow(
		"""
		INSERT INTO users (id, google_id, email, full_name, profile_url, email_verified, password_hash, created_at, updated_at)
		VALUES ($1, $2, $3, $4, $5, $6, NULL, NOW(), NOW())
		RETURNING *
		""",
		uuid4(),
		payload.google_id,
		email,
		(payload.full_name or "").strip() or None,
		payload.profile_picture,
		payload.email_verified,
	)
	return models.User.from_record(created), "created"


async def google_sign_in(
	payload: schemas.GoogleSignIn,
	*,
	user_agent: Optional[str] = None,
	ip: Optional[str] = None,
) -> schemas.GoogleSignInResponse:
	"""Sign in with Google profile fields supplied by the client.

	Accounts without a user_type get `needs_user_type` and no tokens; the
	client finishes with complete_google_signup.
	"""
	pool = await get_pool()
	async with pool.acquire() as conn:
		if await is_deleted_account(conn, normalise_identifier(str(payload.email))):
			obs_metrics.inc_login("google", "deleted")
			raise AccountDeleted()
		async with conn.transaction():
			user, outcome = await _find_or_link(conn, payload)
	logger.info("google_sign_in", extra={"outcome": outcome, "user_id": user.id})

	if not user.user_type:
		obs_metrics.inc_login("google", "needs_user_type")
		return schemas.GoogleSignInResponse(needs_user_type=True, user=sessions.to_user_out(user))

	pair = await sessions.issue_token_pair(user, user_agent=user_agent, ip=ip)
	obs_metrics.inc_login("google", "ok")
	return schemas.GoogleSignInResponse(
		user=pair.user,
		access_token=pair.access_token,
		refresh_token=pair.refresh_token,
		expires_in=pair.expires_in,
	)


async def complete_google_signup(
	google_id: str,
	user_type: str,
	*,
	user_agent: Optional[str] = None,
	ip: Optional[str] = None,
) -> schemas.AuthResponse:
	if user_type not in GOOGLE_USER_TYPES:
		raise IdentityInvalid("Invalid user type. Must be athlete, coach, or organization")
	pool = await get_pool()
	async with pool.acquire() as conn:
		row = await conn.fetchrow(
			"UPDATE users SET user_type = $1, updated_at = NOW() WHERE google_id = $2 RETURNING *",
			user_type,
			google_id,
		)
	if not row:
		raise UserNotFound()
	obs_metrics.inc_signup("google", "ok")
	return await sessions.issue_token_pair(models.User.from_record(row), user_agent=user_agent, ip=ip)
