"""Persisted notifications with realtime and push delivery."""

from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID, uuid4

import asyncpg

from app.domain.notifications import push, sockets
from app.domain.notifications.exceptions import NotificationInvalid, NotificationNotFound
from app.domain.notifications.models import ENTITY_TYPES, NOTIFICATION_TYPES, PUSH_TITLES, clamp_page
from app.domain.notifications.schemas import NotificationList, NotificationOut
from app.infra.postgres import affected_rows, get_pool
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


def _record_to_notification(record: asyncpg.Record) -> NotificationOut:
	return NotificationOut(
		id=record["id"],
		recipient_user_id=record["recipient_user_id"],
		actor_user_id=record["actor_user_id"],
		actor_full_name=record["actor_full_name"],
		type=record["type"],
		entity_type=record["entity_type"],
		entity_id=str(record["entity_id"]),
		message=record["message"],
		is_read=record["is_read"],
		created_at=record["created_at"],
	)


def _validate(
	recipient_id: str | None,
	actor_id: str | None,
	actor_name: str | None,
	kind: str | None,
	entity_type: str | None,
	entity_id: str | None,
	message: str | None,
) -> None:
	if not recipient_id or not actor_id or not entity_id:
		raise NotificationInvalid("missing_participants")
	if not actor_name or not actor_name.strip():
		raise NotificationInvalid("missing_actor_name")
	if not message or not message.strip():
		raise NotificationInvalid("missing_message")
	if kind not in NOTIFICATION_TYPES:
		raise NotificationInvalid("invalid_type")
	if entity_type not in ENTITY_TYPES:
		raise NotificationInvalid("invalid_entity_type")


async def unread_count(user_id: str) -> int:
	pool = await get_pool()
	async with pool.acquire() as conn:
		count = await conn.fetchval(
			"SELECT COUNT(*) FROM notifications WHERE recipient_user_id = $1 AND is_read = FALSE",
			user_id,
		)
	return int(count or 0)


async def _push(notification: NotificationOut) -> None:
	try:
		await push.send_push_to_user(
			str(notification.recipient_user_id),
			title=PUSH_TITLES.get(notification.type, "athlinked"),
			body=notification.message,
			data={
				"notification_id": notification.id,
				"type": notification.type,
				"entity_type": notification.entity_type,
				"entity_id": notification.entity_id,
				"actor_user_id": notification.actor_user_id,
			},
		)
	except Exception:
		obs_metrics.inc_push("error")
		logger.exception("push_delivery_failed", extra={"notification_id": str(notification.id)})


async def create_notification(
	*,
	recipient_id: str,
	actor_id: str,
	actor_name: str,
	kind: str,
	entity_type: str,
	entity_id: str,
	message: str,
) -> Optional[NotificationOut]:
	"""Persist a notification and fan it out.

	Returns None for self-actions; invalid input raises NotificationInvalid.
	"""
	_validate(recipient_id, actor_id, actor_name, kind, entity_type, entity_id, message)
	if str(recipient_id) == str(actor_id):
		return None
	pool = await get_pool()
	async with pool.acquire() as conn:
		record = await conn.fetchrow(
			"""
			INSERT INTO notifications (
				id, recipient_user_id, actor_user_id, actor_full_name,
				type, entity_type, entity_id, message, is_read, created_at
			)
			VALUES ($1, $2, $3, $4, $5, $6, $7, $8, FALSE, NOW())
			RETURNING *
			""",
			uuid4(),
			str(recipient_id),
			str(actor_id),
			actor_name.strip(),
			kind,
			entity_type,
			str(entity_id),
			message.strip(),
		)
	notification = _record_to_notification(record)
	obs_metrics.inc_notification(kind)
	recipient = str(notification.recipient_user_id)
	await sockets.emit_notification_new(recipient, notification.model_dump(mode="json"))
	await sockets.emit_notification_count(recipient, await unread_count(recipient))
	await _push(notification)
	return notification


async def notify(**kwargs) -> Optional[NotificationOut]:
	"""Best-effort create_notification for side effects of other operations."""
	try:
		return await create_notification(**kwargs)
	except Exception:
		logger.exception(
			"notification_failed",
			extra={"kind": kwargs.get("kind"), "entity_type": kwargs.get("entity_type")},
		)
		return None


async def list_notifications(user_id: str, *, limit: int | None = None, offset: int | None = None) -> NotificationList:
	limit, offset = clamp_page(limit, offset)
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			"""
			SELECT *
			FROM notifications
			WHERE recipient_user_id = $1
			ORDER BY created_at DESC
			LIMIT $2 OFFSET $3
			""",
			user_id,
			limit,
			offset,
		)
		unread = await conn.fetchval(
			"SELECT COUNT(*) FROM notifications WHERE recipient_user_id = $1 AND is_read = FALSE",
			user_id,
		)
	return NotificationList(
		notifications=[_record_to_notification(row) for row in rows],
		limit=limit,
		offset=offset,
		unread_count=int(unread or 0),
	)


async def mark_read(notification_id: UUID, user_id: str) -> NotificationOut:
	pool = await get_pool()
	async with pool.acquire() as conn:
		record = await conn.fetchrow(
			"""
			UPDATE notifications
			SET is_read = TRUE
			WHERE id = $1 AND recipient_user_id = $2
			RETURNING *
			""",
			notification_id,
			user_id,
		)
	if not record:
		raise NotificationNotFound()
	await sockets.emit_notification_count(user_id, await unread_count(user_id))
	return _record_to_notification(record)


async def mark_all_read(user_id: str) -> int:
	pool = await get_pool()
	async with pool.acquire() as conn:
		status = await conn.execute(
			"UPDATE notifications SET is_read = TRUE WHERE recipient_user_id = $1 AND is_read = FALSE",
			user_id,
		)
	updated = affected_rows(status)
	await sockets.emit_notification_count(user_id, 0)
	return updated


async def delete_notification(notification_id: UUID, user_id: str) -> None:
	pool = await get_pool()
	async with pool.acquire() as conn:
		status = await conn.execute(
			"DELETE FROM notifications WHERE id = $1 AND recipient_user_id = $2",
			notification_id,
			user_id,
		)
	if affected_rows(status) == 0:
		raise NotificationNotFound()
	await sockets.emit_notification_count(user_id, await unread_count(user_id))
