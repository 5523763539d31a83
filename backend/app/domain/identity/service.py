"""Service layer for signup, login and password reset."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import uuid4

import asyncpg

from app.domain.identity import mailer, models, otp, policy, schemas, sessions
from app.domain.identity.exceptions import AccountDeleted, LoginFailed, OtpInvalid, SignupConflict, UserNotFound
from app.domain.identity.models import MSG_EMAIL_TAKEN, MSG_OTP_SENT, MSG_USERNAME_TAKEN, is_email, normalise_identifier
from app.infra.password import check_needs_rehash, hash_password, verify_password
from app.infra.postgres import get_pool
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


async def start_signup(payload: schemas.SignupStart) -> schemas.SignupStartResponse:
	"""Validate the signup, park it in Redis behind an OTP and mail the code."""
	email, username, recipient = policy.signup_target(payload.email, payload.parent_email)
	policy.guard_password(payload.password)
	pool = await get_pool()
	async with pool.acquire() as conn:
		await policy.ensure_available(conn, email=email, username=username)
	await policy.enforce_otp_request_rate(recipient)

	pending = {
		"email": email,
		"username": username,
		"full_name": payload.full_name.strip(),
		"user_type": payload.user_type,
		"parent_email": normalise_identifier(str(payload.parent_email)) if payload.parent_email else None,
		# only the argon2 hash is parked in Redis
		"password_hash": hash_password(payload.password),
	}
	code = await otp.issue(otp.SIGNUP, recipient, pending)
	await mailer.send_signup_otp(recipient, code)
	if pending["parent_email"]:
		await mailer.send_parent_signup_link(
			pending["parent_email"],
			username or email or "",
			username=username is not None,
		)
	obs_metrics.inc_signup("start", "ok")
	return schemas.SignupStartResponse(message=MSG_OTP_SENT, email=recipient)


async def _insert_user(conn: asyncpg.Connection, pending: dict) -> models.User:
	try:
		row = await conn.fetchrow(
			"""
			INSERT INTO users (
				id, email, username, password_hash, full_name, user_type, parent_email,
				email_verified, created_at, updated_at
			)
			VALUES ($1, $2, $3, $4, $5, $6, $7, $8, NOW(), NOW())
			RETURNING *
			""",
			uuid4(),
			pending.get("email"),
			pending.get("username"),
			pending["password_hash"],
			pending.get("full_name"),
			pending.get("user_type"),
			pending.get("parent_email"),
			pending.get("email") is not None,
		)
	except asyncpg.UniqueViolationError as exc:
		raise SignupConflict(MSG_USERNAME_TAKEN if pending.get("username") else MSG_EMAIL_TAKEN) from exc
	return models.User.from_record(row)


async def verify_signup(
	email: str,
	code: str,
	*,
	user_agent: Optional[str] = None,
	ip: Optional[str] = None,
) -> schemas.AuthResponse:
	"""Create the account parked under `email` once its OTP checks out."""
	recipient = normalise_identifier(email)
	try:
		pending = await otp.verify(otp.SIGNUP, recipient, code)
	except OtpInvalid:
		obs_metrics.inc_signup("verify", "error")
		raise
	pool = await get_pool()
	async with pool.acquire() as conn:
		await policy.ensure_available(conn, email=pending.get("email"), username=pending.get("username"))
		user = await _insert_user(conn, pending)
	obs_metrics.inc_signup("verify", "ok")
	return await sessions.issue_token_pair(user, user_agent=user_agent, ip=ip)


async def _find_by_identifier(conn: asyncpg.Connection, identifier: str) -> Optional[models.User]:
	column = "email" if is_email(identifier) else "username"
	row = await conn.fetchrow(f"SELECT * FROM users WHERE LOWER({column}) = $1", identifier)
	return models.User.from_record(row) if row else None


async def login(
	identifier: str,
	password: str,
	*,
	user_agent: Optional[str] = None,
	ip: Optional[str] = None,
) -> schemas.AuthResponse:
	identifier = normalise_identifier(identifier)
	await policy.enforce_login_rate(identifier)
	pool = await get_pool()
	async with pool.acquire() as conn:
		if await policy.is_deleted_account(conn, identifier):
			obs_metrics.inc_login("password", "deleted")
			raise AccountDeleted()
		user = await _find_by_identifier(conn, identifier)
		# unknown users, Google-only accounts and bad passwords look the same
		if user is None or not verify_password(user.password_hash, password):
			obs_metrics.inc_login("password", "failed")
			raise LoginFailed()
		if check_needs_rehash(user.password_hash or ""):
			await conn.execute(
				"UPDATE users SET password_hash = $1, updated_at = NOW() WHERE id = $2",
				hash_password(password),
				user.id,
			)
	obs_metrics.inc_login("password", "ok")
	return await sessions.issue_token_pair(user, user_agent=user_agent, ip=ip)


async def refresh(refresh_token: str) -> schemas.RefreshResponse:
	return await sessions.refresh(refresh_token)


async def logout(refresh_token: str) -> bool:
	return await sessions.revoke(refresh_token)


async def logout_all(user_id: str) -> int:
	return await sessions.revoke_all(user_id)


async def request_password_reset(identifier: str) -> schemas.MessageResponse:
	"""Mail a reset code to the account, or to the parent for username accounts.

	Unknown identifiers get the same response so accounts cannot be probed.
	"""
	identifier = normalise_identifier(identifier)
	pool = await get_pool()
	async with pool.acquire() as conn:
		user = await _find_by_identifier(conn, identifier)
	message = "If the account exists, a reset code has been sent"
	if user is None or not user.contact_email:
		logger.info("password_reset_unknown_identifier")
		return schemas.MessageResponse(message=message)
	recipient = user.contact_email
	await policy.enforce_otp_request_rate(recipient)
	code = await otp.issue(otp.PASSWORD_RESET, identifier, {"user_id": user.id})
	await mailer.send_password_reset_otp(recipient, code)
	return schemas.MessageResponse(message=message)


async def reset_password(identifier: str, code: str, new_password: str) -> schemas.MessageResponse:
	"""Set a new password after checking the reset code; every refresh token is revoked."""
	policy.guard_password(new_password)
	identifier = normalise_identifier(identifier)
	pending = await otp.verify(otp.PASSWORD_RESET, identifier, code)
	user_id = pending.get("user_id")
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			updated = await conn.fetchval(
				"UPDATE users SET password_hash = $1, updated_at = NOW() WHERE id = $2 RETURNING id",
				hash_password(new_password),
				user_id,
			)
			if updated is None:
				raise UserNotFound()
			await sessions.revoke_all(str(user_id), conn=conn)
	return schemas.MessageResponse(message="Password reset successfully")


async def get_me(user_id: str) -> schemas.UserOut:
	pool = await get_pool()
	async with pool.acquire() as conn:
		row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
	if not row:
		raise UserNotFound()
	return sessions.to_user_out(models.User.from_record(row))
