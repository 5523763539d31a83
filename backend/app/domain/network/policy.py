"""Edge-level helpers and guards for the follow/connection graph.

Every helper takes the caller's connection so counter maintenance runs in the
same transaction as the edge it accounts for.
"""

from __future__ import annotations

from uuid import uuid4

import asyncpg

from app.domain.common.users import UserBrief, fetch_user_brief
from app.domain.network.exceptions import NetworkRateLimitExceeded, NetworkSelfAction, NetworkUserNotFound
from app.domain.network.models import CONNECTION_REQUESTS_PER_HOUR, FOLLOW_PER_MINUTE, normalize_pair
from app.infra import rate_limit
from app.infra.postgres import affected_rows


def guard_not_self(actor_id: str, target_id: str, reason: str = "cannot_target_self") -> None:
	if str(actor_id) == str(target_id):
		raise NetworkSelfAction(reason)


async def enforce_follow_limits(user_id: str) -> None:
	if not await rate_limit.allow("follow", user_id, limit=FOLLOW_PER_MINUTE, window_seconds=60):
		raise NetworkRateLimitExceeded("follow_rate_limited")


async def enforce_connection_request_limits(user_id: str) -> None:
	if not await rate_limit.allow("connreq", user_id, limit=CONNECTION_REQUESTS_PER_HOUR, window_seconds=3600):
		raise NetworkRateLimitExceeded("connection_request_rate_limited")


async def require_user(conn: asyncpg.Connection, user_id: str) -> UserBrief:
	user = await fetch_user_brief(conn, user_id)
	if user is None:
		raise NetworkUserNotFound()
	return user


async def has_follow(conn: asyncpg.Connection, follower_id: str, following_id: str) -> bool:
	return bool(
		await conn.fetchval(
			"SELECT EXISTS(SELECT 1 FROM user_follows WHERE follower_id = $1 AND following_id = $2)",
			follower_id,
			following_id,
		)
	)


async def is_connected(conn: asyncpg.Connection, user_a: str, user_b: str) -> bool:
	low, high = normalize_pair(user_a, user_b)
	return bool(
		await conn.fetchval(
			"SELECT EXISTS(SELECT 1 FROM user_connections WHERE user_id_1 = $1 AND user_id_2 = $2)",
			low,
			high,
		)
	)


async def insert_follow_edge(
	conn: asyncpg.Connection,
	follower: UserBrief,
	following: UserBrief,
) -> bool:
	"""Insert a follow edge and bump both counters; returns False when the edge already existed."""
	created = await conn.fetchval(
		"""
		INSERT INTO user_follows (id, follower_id, following_id, follower_username, following_username, created_at)
		VALUES ($1, $2, $3, $4, $5, NOW())
		ON CONFLICT (follower_id, following_id) DO NOTHING
		RETURNING id
		""",
		uuid4(),
		follower.id,
		following.id,
		follower.handle,
		following.handle,
	)
	if created is None:
		return False
	await conn.execute("UPDATE users SET following = following + 1 WHERE id = $1", follower.id)
	await conn.execute("UPDATE users SET followers = followers + 1 WHERE id = $1", following.id)
	return True


async def delete_follow_edge(conn: asyncpg.Connection, follower_id: str, following_id: str) -> bool:
	"""Delete a follow edge and decrement both counters (floored at zero)."""
	status = await conn.execute(
		"DELETE FROM user_follows WHERE follower_id = $1 AND following_id = $2",
		follower_id,
		following_id,
	)
	if affected_rows(status) == 0:
		return False
	await conn.execute("UPDATE users SET following = GREATEST(following - 1, 0) WHERE id = $1", follower_id)
	await conn.execute("UPDATE users SET followers = GREATEST(followers - 1, 0) WHERE id = $1", following_id)
	return True


async def insert_connection(conn: asyncpg.Connection, user_a: UserBrief, user_b: UserBrief) -> bool:
	first, second = (user_a, user_b) if normalize_pair(user_a.id, user_b.id)[0] == str(user_a.id) else (user_b, user_a)
	created = await conn.fetchval(
		"""
		INSERT INTO user_connections (id, user_id_1, user_id_2, full_name_1, full_name_2, created_at)
		VALUES ($1, $2, $3, $4, $5, NOW())
		ON CONFLICT (user_id_1, user_id_2) DO NOTHING
		RETURNING id
		""",
		uuid4(),
		first.id,
		second.id,
		first.display_name,
		second.display_name,
	)
	return created is not None


async def delete_connection(conn: asyncpg.Connection, user_a: str, user_b: str) -> bool:
	low, high = normalize_pair(user_a, user_b)
	status = await conn.execute(
		"DELETE FROM user_connections WHERE user_id_1 = $1 AND user_id_2 = $2",
		low,
		high,
	)
	return affected_rows(status) > 0


async def pending_request_between(conn: asyncpg.Connection, user_a: str, user_b: str) -> asyncpg.Record | None:
	return await conn.fetchrow(
		"""
		SELECT id, requester_id, receiver_id, status
		FROM connection_requests
		WHERE status = 'pending'
			AND ((requester_id = $1 AND receiver_id = $2) OR (requester_id = $2 AND receiver_id = $1))
		LIMIT 1
		""",
		user_a,
		user_b,
	)
