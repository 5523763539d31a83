"""Access JWTs and peppered refresh tokens.

Refresh tokens are 64 random bytes, hex encoded. Only a SHA-256 of the
pepper and token is stored, with its expiry and the client that asked for it.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import uuid4

import asyncpg

from app.domain.identity import models, schemas
from app.domain.identity.exceptions import RefreshInvalid
from app.infra import jwt as jwt_helper
from app.infra import storage
from app.infra.postgres import affected_rows, get_pool
from app.obs import metrics as obs_metrics
from app.settings import settings

ACCESS_TTL_SECONDS = settings.access_ttl_minutes * 60
REFRESH_TTL_SECONDS = settings.refresh_ttl_days * 24 * 60 * 60


def _now() -> datetime:
	return datetime.now(timezone.utc)


def _h(token: str) -> str:
	return hashlib.sha256((settings.refresh_pepper + token).encode()).hexdigest()


def generate_refresh_token() -> str:
	return secrets.token_bytes(64).hex()


def build_access_token(user: models.User) -> str:
	payload = {
		"sub": user.id,
		"email": user.email,
		"username": user.username,
		"user_type": user.user_type,
	}
	return jwt_helper.encode_access(payload, ttl_seconds=ACCESS_TTL_SECONDS)


def to_user_out(user: models.User) -> schemas.UserOut:
	return schemas.UserOut(
		id=user.id,
		email=user.email,
		username=user.username,
		full_name=user.full_name,
		user_type=user.user_type,
		profile_url=storage.presign(user.profile_url),
		parent_email=user.parent_email,
		followers=user.followers,
		following=user.following,
		is_featured=user.is_featured,
		created_at=user.created_at,
	)


async def _insert_refresh_token(
	conn: asyncpg.Connection,
	user_id: str,
	token: str,
	*,
	user_agent: Optional[str],
	ip: Optional[str],
) -> None:
	await conn.execute(
		"""
		INSERT INTO refresh_tokens (id, user_id, token_hash, expires_at, user_agent, ip_address, created_at)
		VALUES ($1, $2, $3, $4, $5, $6, NOW())
		""",
		uuid4(),
		user_id,
		_h(token),
		_now() + timedelta(seconds=REFRESH_TTL_SECONDS),
		(user_agent or "")[:255] or None,
		ip,
	)


async def issue_token_pair(
	user: models.User,
	*,
	user_agent: Optional[str] = None,
	ip: Optional[str] = None,
	message: str = "Welcome",
) -> schemas.AuthResponse:
	"""Store a new refresh token for the user and return it with an access token."""
	refresh_token = generate_refresh_token()
	pool = await get_pool()
	async with pool.acquire() as conn:
		await _insert_refresh_token(conn, user.id, refresh_token, user_agent=user_agent, ip=ip)
	return schemas.AuthResponse(
		message=message,
		access_token=build_access_token(user),
		refresh_token=refresh_token,
		expires_in=ACCESS_TTL_SECONDS,
		user=to_user_out(user),
	)


async def refresh(token: str) -> schemas.RefreshResponse:
	"""Exchange a live refresh token for a new access token."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		row = await conn.fetchrow(
			"""
			SELECT rt.expires_at, rt.revoked_at, u.*
			FROM refresh_tokens rt
			JOIN users u ON u.id = rt.user_id
			WHERE rt.token_hash = $1
			""",
			_h(token),
		)
	if not row:
		obs_metrics.inc_refresh("unknown")
		raise RefreshInvalid("invalid_refresh_token")
	if row["revoked_at"] is not None:
		obs_metrics.inc_refresh("revoked")
		raise RefreshInvalid("refresh_token_revoked")
	if row["expires_at"] <= _now():
		obs_metrics.inc_refresh("expired")
		raise RefreshInvalid("refresh_token_expired")
	obs_metrics.inc_refresh("ok")
	user = models.User.from_record(row)
	return schemas.RefreshResponse(access_token=build_access_token(user), expires_in=ACCESS_TTL_SECONDS)


async def revoke(token: str) -> bool:
	pool = await get_pool()
	async with pool.acquire() as conn:
		status = await conn.execute(
			"UPDATE refresh_tokens SET revoked_at = NOW() WHERE token_hash = $1 AND revoked_at IS NULL",
			_h(token),
		)
	return affected_rows(status) > 0


async def revoke_all(user_id: str, *, conn: Optional[asyncpg.Connection] = None) -> int:
	query = "UPDATE refresh_tokens SET revoked_at = NOW() WHERE user_id = $1 AND revoked_at IS NULL"
	if conn is not None:
		return affected_rows(await conn.execute(query, user_id))
	pool = await get_pool()
	async with pool.acquire() as acquired:
		return affected_rows(await acquired.execute(query, user_id))
