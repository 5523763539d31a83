"""FCM registration tokens and push fan-out to users."""

from __future__ import annotations

import logging
from typing import Iterable, List, Mapping, Optional, Sequence
from uuid import uuid4

import asyncpg

from app.domain.notifications.exceptions import FcmTokenInvalid, FcmTokenNotFound
from app.domain.notifications.schemas import FcmTokenOut, PushSummary
from app.infra import push as fcm
from app.infra.postgres import affected_rows, get_pool
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _record_to_token(record: asyncpg.Record) -> FcmTokenOut:
	return FcmTokenOut(
		id=record["id"],
		token=record["token"],
		device_type=record.get("device_type"),
		device_id=record.get("device_id"),
		created_at=record["created_at"],
		updated_at=record["updated_at"],
	)


async def register_token(
	user_id: str,
	token: str,
	*,
	device_type: Optional[str] = None,
	device_id: Optional[str] = None,
) -> FcmTokenOut:
	"""Upsert a registration token; a token seen on another account moves to this user."""
	token = (token or "").strip()
	if not token:
		raise FcmTokenInvalid()
	pool = await get_pool()
	async with pool.acquire() as conn:
		record = await conn.fetchrow(
			"""
			INSERT INTO fcm_tokens (id, user_id, token, device_type, device_id, created_at, updated_at)
			VALUES ($1, $2, $3, $4, $5, NOW(), NOW())
			ON CONFLICT (token) DO UPDATE SET
				user_id = EXCLUDED.user_id,
				device_type = EXCLUDED.device_type,
				device_id = EXCLUDED.device_id,
				updated_at = NOW()
			RETURNING id, token, device_type, device_id, created_at, updated_at
			""",
			uuid4(),
			user_id,
			token,
			device_type,
			device_id,
		)
	return _record_to_token(record)


async def list_tokens(user_id: str) -> List[FcmTokenOut]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			"""
			SELECT id, token, device_type, device_id, created_at, updated_at
			FROM fcm_tokens
			WHERE user_id = $1
			ORDER BY updated_at DESC
			""",
			user_id,
		)
	return [_record_to_token(row) for row in rows]


async def remove_token(user_id: str, token: str) -> None:
	pool = await get_pool()
	async with pool.acquire() as conn:
		status = await conn.execute(
			"DELETE FROM fcm_tokens WHERE user_id = $1 AND token = $2",
			user_id,
			token,
		)
	if affected_rows(status) == 0:
		raise FcmTokenNotFound()


async def remove_invalid_tokens(tokens: Iterable[str]) -> int:
	tokens = [token for token in tokens if token]
	if not tokens:
		return 0
	pool = await get_pool()
	async with pool.acquire() as conn:
		status = await conn.execute("DELETE FROM fcm_tokens WHERE token = ANY($1::text[])", tokens)
	removed = affected_rows(status)
	logger.info("fcm_invalid_tokens_removed", extra={"count": removed})
	return removed


async def _tokens_for_user(user_id: str) -> List[str]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch("SELECT token FROM fcm_tokens WHERE user_id = $1", user_id)
	return [row["token"] for row in rows]


async def send_push_to_user(
	user_id: str,
	*,
	title: str,
	body: str,
	data: Mapping[str, object] | None = None,
) -> PushSummary:
	"""Multicast to every device of a user and prune tokens FCM rejects permanently."""
	if not fcm.is_enabled():
		return PushSummary()
	tokens = await _tokens_for_user(user_id)
	if not tokens:
		return PushSummary()
	result = await fcm.send_multicast(tokens, title=title, body=body, data=data)
	obs_metrics.inc_push("success", result.success_count)
	obs_metrics.inc_push("failure", result.failure_count)
	if result.invalid_tokens:
		await remove_invalid_tokens(result.invalid_tokens)
	return PushSummary(
		success_count=result.success_count,
		failure_count=result.failure_count,
		invalid_tokens=list(result.invalid_tokens),
		per_user={user_id: result.success_count},
	)


async def send_push_to_users(
	user_ids: Sequence[str],
	*,
	title: str,
	body: str,
	data: Mapping[str, object] | None = None,
) -> PushSummary:
	summary = PushSummary()
	for user_id in dict.fromkeys(user_ids):
		result = await send_push_to_user(user_id, title=title, body=body, data=data)
		summary.success_count += result.success_count
		summary.failure_count += result.failure_count
		summary.invalid_tokens.extend(result.invalid_tokens)
		summary.per_user[user_id] = result.success_count
	return summary
