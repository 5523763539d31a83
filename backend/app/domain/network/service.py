"""Service layer for follows, connections and connection requests."""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID, uuid4

import asyncpg

from app.domain.network import audit, policy
from app.domain.network.exceptions import ConnectionNotFound, ConnectionRequestNotFound
from app.domain.network.models import (
	MSG_ALREADY_CONNECTED,
	MSG_REQUEST_EXISTS,
	MSG_REQUEST_PENDING,
	MSG_REQUEST_SENT,
	NetworkStatus,
	canonical_id,
)
from app.domain.network.schemas import (
	ConnectionRequestOut,
	ConnectionRequestResult,
	ConnectionStatus,
	FollowCounts,
	NetworkUpdatePayload,
	NetworkUser,
)
from app.domain.notifications import service as notifications
from app.domain.notifications import sockets
from app.domain.notifications.models import EntityType, NotificationType
from app.infra import storage
from app.infra.postgres import get_pool

logger = logging.getLogger(__name__)


def _record_to_user(record: asyncpg.Record) -> NetworkUser:
	return NetworkUser(
		id=record["id"],
		username=record.get("username"),
		full_name=record.get("full_name"),
		profile_url=storage.presign(record.get("profile_url")),
		user_type=record.get("user_type"),
		since=record.get("since"),
	)


def _record_to_request(record: asyncpg.Record) -> ConnectionRequestOut:
	return ConnectionRequestOut(
		id=record["id"],
		requester_id=record["requester_id"],
		receiver_id=record["receiver_id"],
		status=record["status"],
		created_at=record["created_at"],
		requester_username=record.get("requester_username"),
		requester_full_name=record.get("requester_full_name"),
		requester_profile_url=storage.presign(record.get("requester_profile_url")),
		requester_user_type=record.get("requester_user_type"),
	)


async def _emit_pair(user_a: str, user_b: str, status: NetworkStatus) -> None:
	await sockets.emit_network_update(
		user_a,
		NetworkUpdatePayload(user_id=user_a, target_id=user_b, status=status.value).model_dump(mode="json"),
	)
	await sockets.emit_network_update(
		user_b,
		NetworkUpdatePayload(user_id=user_b, target_id=user_a, status=status.value).model_dump(mode="json"),
	)


async def follow_user(follower_id: str, target_id: str) -> bool:
	"""Create a follow edge; returns False when already following."""
	follower_id, target_id = canonical_id(follower_id), canonical_id(target_id)
	policy.guard_not_self(follower_id, target_id, "cannot_follow_self")
	await policy.enforce_follow_limits(follower_id)

	pool = await get_pool()
	async with pool.acquire() as conn:
		target = await policy.require_user(conn, target_id)
		follower = await policy.require_user(conn, follower_id)
		async with conn.transaction():
			created = await policy.insert_follow_edge(conn, follower, target)
	if not created:
		return False

	await audit.log_network_event("follow", {"follower": follower_id, "following": target_id})
	await _emit_pair(follower_id, target_id, NetworkStatus.FOLLOWING)
	await notifications.notify(
		recipient_id=target_id,
		actor_id=follower_id,
		actor_name=follower.display_name,
		kind=NotificationType.FOLLOW.value,
		entity_type=EntityType.PROFILE.value,
		entity_id=follower_id,
		message=f"{follower.display_name} started following you",
	)
	return True


async def unfollow_user(follower_id: str, target_id: str) -> bool:
	"""Remove a follow edge; a connected pair loses the reverse edge and the connection too."""
	follower_id, target_id = canonical_id(follower_id), canonical_id(target_id)
	policy.guard_not_self(follower_id, target_id, "cannot_unfollow_self")

	severed = False
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			removed = await policy.delete_follow_edge(conn, follower_id, target_id)
			# a connection counts as following even without a direct edge
			if await policy.is_connected(conn, follower_id, target_id):
				await policy.delete_follow_edge(conn, target_id, follower_id)
				severed = await policy.delete_connection(conn, follower_id, target_id)
	if not (removed or severed):
		return False

	await audit.log_network_event(
		"unfollow",
		{"follower": follower_id, "following": target_id, "severed": "1" if severed else "0"},
	)
	await _emit_pair(
		follower_id,
		target_id,
		NetworkStatus.DISCONNECTED if severed else NetworkStatus.UNFOLLOWED,
	)
	return True


_USER_COLUMNS = "u.id, u.username, u.full_name, u.profile_url, u.user_type"


async def get_followers(user_id: str) -> List[NetworkUser]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT {_USER_COLUMNS}, uf.created_at AS since
			FROM user_follows uf
			JOIN users u ON u.id = uf.follower_id
			WHERE uf.following_id = $1
			ORDER BY uf.created_at DESC
			""",
			canonical_id(user_id),
		)
	return [_record_to_user(row) for row in rows]


async def get_following(user_id: str) -> List[NetworkUser]:
	"""Direct follows plus connected users (a connection implies following)."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT {_USER_COLUMNS}, NULL::timestamptz AS since
			FROM users u
			WHERE u.id <> $1
				AND (
					EXISTS (SELECT 1 FROM user_follows uf WHERE uf.follower_id = $1 AND uf.following_id = u.id)
					OR EXISTS (
						SELECT 1 FROM user_connections uc
						WHERE (uc.user_id_1 = $1 AND uc.user_id_2 = u.id)
							OR (uc.user_id_2 = $1 AND uc.user_id_1 = u.id)
					)
				)
			ORDER BY u.full_name ASC NULLS LAST, u.id
			""",
			canonical_id(user_id),
		)
	return [_record_to_user(row) for row in rows]


async def get_follow_counts(user_id: str) -> FollowCounts:
	pool = await get_pool()
	async with pool.acquire() as conn:
		record = await conn.fetchrow(
			"SELECT followers, following FROM users WHERE id = $1",
			canonical_id(user_id),
		)
	if not record:
		return FollowCounts()
	return FollowCounts(followers=record["followers"] or 0, following=record["following"] or 0)


async def is_following(follower_id: str, target_id: str) -> bool:
	follower_id, target_id = canonical_id(follower_id), canonical_id(target_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		if await policy.has_follow(conn, follower_id, target_id):
			return True
		return await policy.is_connected(conn, follower_id, target_id)


async def send_connection_request(requester_id: str, receiver_id: str) -> ConnectionRequestResult:
	requester_id, receiver_id = canonical_id(requester_id), canonical_id(receiver_id)
	policy.guard_not_self(requester_id, receiver_id, "cannot_connect_self")
	await policy.enforce_connection_request_limits(requester_id)

	pool = await get_pool()
	async with pool.acquire() as conn:
		await policy.require_user(conn, receiver_id)
		requester = await policy.require_user(conn, requester_id)
		if await policy.is_connected(conn, requester_id, receiver_id):
			return ConnectionRequestResult(success=False, message=MSG_ALREADY_CONNECTED)
		if await policy.pending_request_between(conn, requester_id, receiver_id):
			return ConnectionRequestResult(success=False, message=MSG_REQUEST_PENDING)
		try:
			request_id = await conn.fetchval(
				"""
				INSERT INTO connection_requests (id, requester_id, receiver_id, status, created_at, updated_at)
				VALUES ($1, $2, $3, 'pending', NOW(), NOW())
				ON CONFLICT (requester_id, receiver_id)
				DO UPDATE SET status = 'pending', updated_at = NOW()
				RETURNING id
				""",
				uuid4(),
				requester_id,
				receiver_id,
			)
		except asyncpg.UniqueViolationError:
			return ConnectionRequestResult(success=False, message=MSG_REQUEST_EXISTS)

	await audit.log_network_event("connection_request", {"requester": requester_id, "receiver": receiver_id})
	await notifications.notify(
		recipient_id=receiver_id,
		actor_id=requester_id,
		actor_name=requester.display_name,
		kind=NotificationType.CONNECTION_REQUEST.value,
		entity_type=EntityType.PROFILE.value,
		entity_id=requester_id,
		message=f"{requester.display_name} sent you a connection request",
	)
	return ConnectionRequestResult(success=True, message=MSG_REQUEST_SENT, request_id=request_id)


async def accept_connection_request(request_id: UUID, receiver_id: str) -> ConnectionRequestOut:
	"""Accept a pending request: mutual follows plus the normalized connection, atomically."""
	receiver_id = canonical_id(receiver_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			record = await conn.fetchrow(
				"""
				SELECT * FROM connection_requests
				WHERE id = $1 AND receiver_id = $2 AND status = 'pending'
				FOR UPDATE
				""",
				request_id,
				receiver_id,
			)
			if not record:
				raise ConnectionRequestNotFound()
			requester = await policy.require_user(conn, str(record["requester_id"]))
			receiver = await policy.require_user(conn, receiver_id)
			updated = await conn.fetchrow(
				"""
				UPDATE connection_requests
				SET status = 'accepted', updated_at = NOW()
				WHERE id = $1
				RETURNING *
				""",
				request_id,
			)
			await policy.insert_follow_edge(conn, requester, receiver)
			await policy.insert_follow_edge(conn, receiver, requester)
			await policy.insert_connection(conn, requester, receiver)

	await audit.log_network_event("connection_accepted", {"requester": requester.id, "receiver": receiver.id})
	await _emit_pair(requester.id, receiver.id, NetworkStatus.CONNECTED)
	await notifications.notify(
		recipient_id=requester.id,
		actor_id=receiver.id,
		actor_name=receiver.display_name,
		kind=NotificationType.CONNECTION_ACCEPTED.value,
		entity_type=EntityType.PROFILE.value,
		entity_id=receiver.id,
		message=f"{receiver.display_name} accepted your connection request",
	)
	return _record_to_request(updated)


async def reject_connection_request(request_id: UUID, receiver_id: str) -> None:
	pool = await get_pool()
	async with pool.acquire() as conn:
		deleted = await conn.fetchval(
			"""
			DELETE FROM connection_requests
			WHERE id = $1 AND receiver_id = $2 AND status = 'pending'
			RETURNING requester_id
			""",
			request_id,
			canonical_id(receiver_id),
		)
	if deleted is None:
		raise ConnectionRequestNotFound()
	await audit.log_network_event("connection_rejected", {"requester": str(deleted), "receiver": str(receiver_id)})


async def get_connection_requests(user_id: str) -> List[ConnectionRequestOut]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			"""
			SELECT cr.*,
				u.username AS requester_username,
				u.full_name AS requester_full_name,
				u.profile_url AS requester_profile_url,
				u.user_type AS requester_user_type
			FROM connection_requests cr
			JOIN users u ON u.id = cr.requester_id
			WHERE cr.receiver_id = $1 AND cr.status = 'pending'
			ORDER BY cr.created_at DESC
			""",
			canonical_id(user_id),
		)
	return [_record_to_request(row) for row in rows]


async def check_connection_request_status(user_id: str, other_id: str) -> ConnectionStatus:
	user_id, other_id = canonical_id(user_id), canonical_id(other_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		if await policy.is_connected(conn, user_id, other_id):
			return ConnectionStatus(exists=True, status="connected")
		record = await conn.fetchrow(
			"""
			SELECT id, requester_id, status
			FROM connection_requests
			WHERE (requester_id = $1 AND receiver_id = $2) OR (requester_id = $2 AND receiver_id = $1)
			ORDER BY updated_at DESC
			LIMIT 1
			""",
			user_id,
			other_id,
		)
	if not record:
		return ConnectionStatus(exists=False)
	return ConnectionStatus(
		exists=True,
		status=record["status"],
		direction="sent" if str(record["requester_id"]) == user_id else "received",
		request_id=record["id"],
	)


async def is_connected(user_a: str, user_b: str) -> bool:
	pool = await get_pool()
	async with pool.acquire() as conn:
		return await policy.is_connected(conn, canonical_id(user_a), canonical_id(user_b))


async def get_connections(user_id: str) -> List[NetworkUser]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT {_USER_COLUMNS}, uc.created_at AS since
			FROM user_connections uc
			JOIN users u ON u.id = CASE WHEN uc.user_id_1 = $1 THEN uc.user_id_2 ELSE uc.user_id_1 END
			WHERE uc.user_id_1 = $1 OR uc.user_id_2 = $1
			ORDER BY uc.created_at DESC
			""",
			canonical_id(user_id),
		)
	return [_record_to_user(row) for row in rows]


async def create_connection(user_a: str, user_b: str) -> bool:
	"""Insert the normalized connection row; returns False if it already exists."""
	user_a, user_b = canonical_id(user_a), canonical_id(user_b)
	policy.guard_not_self(user_a, user_b, "cannot_connect_self")
	pool = await get_pool()
	async with pool.acquire() as conn:
		first = await policy.require_user(conn, user_a)
		second = await policy.require_user(conn, user_b)
		return await policy.insert_connection(conn, first, second)


async def remove_connection(user_a: str, user_b: str) -> bool:
	pool = await get_pool()
	async with pool.acquire() as conn:
		return await policy.delete_connection(conn, canonical_id(user_a), canonical_id(user_b))


async def disconnect(user_id: str, other_id: str) -> None:
	"""Remove a connection together with both follow edges and any request history."""
	user_id, other_id = canonical_id(user_id), canonical_id(other_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			removed = await policy.delete_connection(conn, user_id, other_id)
			if not removed:
				raise ConnectionNotFound()
			await policy.delete_follow_edge(conn, user_id, other_id)
			await policy.delete_follow_edge(conn, other_id, user_id)
			await conn.execute(
				"""
				DELETE FROM connection_requests
				WHERE (requester_id = $1 AND receiver_id = $2) OR (requester_id = $2 AND receiver_id = $1)
				""",
				user_id,
				other_id,
			)
	await audit.log_network_event("disconnect", {"user": user_id, "other": other_id})
	await _emit_pair(user_id, other_id, NetworkStatus.DISCONNECTED)
