"""Likes and threaded comments over a content table (posts or clips).

Functions take the caller's connection; counters move inside the caller's
transaction together with the row they count.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import asyncpg

from app.domain.common.exceptions import AlreadyLiked, CommentNotFound, EngagementRateLimitExceeded, NotLiked
from app.domain.common.schemas import CommentOut
from app.domain.common.users import UserBrief
from app.infra import rate_limit, storage
from app.infra.postgres import affected_rows

LIKES_PER_MINUTE = 60
COMMENTS_PER_MINUTE = 20


@dataclass(frozen=True, slots=True)
class EngagementTables:
	content: str
	likes: str
	comments: str
	fk: str


POST_TABLES = EngagementTables(content="posts", likes="post_likes", comments="post_comments", fk="post_id")
CLIP_TABLES = EngagementTables(content="clips", likes="clip_likes", comments="clip_comments", fk="clip_id")


async def enforce_like_limits(user_id: str) -> None:
	if not await rate_limit.allow("like", user_id, limit=LIKES_PER_MINUTE, window_seconds=60):
		raise EngagementRateLimitExceeded("like_rate_limited")


async def enforce_comment_limits(user_id: str) -> None:
	if not await rate_limit.allow("comment", user_id, limit=COMMENTS_PER_MINUTE, window_seconds=60):
		raise EngagementRateLimitExceeded("comment_rate_limited")


async def add_like(conn: asyncpg.Connection, tables: EngagementTables, content_id: UUID, user_id: str) -> int:
	"""Record a like and return the new like_count; a second like raises AlreadyLiked."""
	created = await conn.fetchval(
		f"""
		INSERT INTO {tables.likes} (id, {tables.fk}, user_id, created_at)
		VALUES ($1, $2, $3, NOW())
		ON CONFLICT ({tables.fk}, user_id) DO NOTHING
		RETURNING id
		""",
		uuid4(),
		content_id,
		user_id,
	)
	if created is None:
		raise AlreadyLiked()
	count = await conn.fetchval(
		f"UPDATE {tables.content} SET like_count = like_count + 1 WHERE id = $1 RETURNING like_count",
		content_id,
	)
	return int(count or 0)


async def remove_like(conn: asyncpg.Connection, tables: EngagementTables, content_id: UUID, user_id: str) -> int:
	status = await conn.execute(
		f"DELETE FROM {tables.likes} WHERE {tables.fk} = $1 AND user_id = $2",
		content_id,
		user_id,
	)
	if affected_rows(status) == 0:
		raise NotLiked()
	count = await conn.fetchval(
		f"UPDATE {tables.content} SET like_count = GREATEST(like_count - 1, 0) WHERE id = $1 RETURNING like_count",
		content_id,
	)
	return int(count or 0)


async def is_liked(conn: asyncpg.Connection, tables: EngagementTables, content_id: UUID, user_id: str) -> bool:
	return bool(
		await conn.fetchval(
			f"SELECT EXISTS(SELECT 1 FROM {tables.likes} WHERE {tables.fk} = $1 AND user_id = $2)",
			content_id,
			user_id,
		)
	)


async def insert_comment(
	conn: asyncpg.Connection,
	tables: EngagementTables,
	content_id: UUID,
	user_id: str,
	text: str,
	parent_comment_id: Optional[UUID] = None,
) -> tuple[asyncpg.Record, int]:
	"""Insert a comment and return it with the content's new comment_count."""
	record = await conn.fetchrow(
		f"""
		INSERT INTO {tables.comments} (id, {tables.fk}, user_id, comment, parent_comment_id, created_at)
		VALUES ($1, $2, $3, $4, $5, NOW())
		RETURNING id, {tables.fk} AS entity_id, user_id, comment, parent_comment_id, created_at
		""",
		uuid4(),
		content_id,
		user_id,
		text,
		parent_comment_id,
	)
	count = await conn.fetchval(
		f"UPDATE {tables.content} SET comment_count = comment_count + 1 WHERE id = $1 RETURNING comment_count",
		content_id,
	)
	return record, int(count or 0)


async def get_comment(conn: asyncpg.Connection, tables: EngagementTables, comment_id: UUID) -> asyncpg.Record:
	record = await conn.fetchrow(
		f"""
		SELECT c.id, c.{tables.fk} AS entity_id, c.user_id, c.comment, c.parent_comment_id, c.created_at,
			u.username, u.full_name
		FROM {tables.comments} c
		JOIN users u ON u.id = c.user_id
		WHERE c.id = $1
		""",
		comment_id,
	)
	if not record:
		raise CommentNotFound()
	return record


async def delete_comment_tree(
	conn: asyncpg.Connection,
	tables: EngagementTables,
	comment_id: UUID,
	content_id: UUID,
) -> int:
	"""Delete a comment with every reply beneath it and return the number removed."""
	removed = await conn.fetchval(
		f"""
		WITH RECURSIVE tree AS (
			SELECT id FROM {tables.comments} WHERE id = $1
			UNION ALL
			SELECT c.id FROM {tables.comments} c JOIN tree t ON c.parent_comment_id = t.id
		), gone AS (
			DELETE FROM {tables.comments} WHERE id IN (SELECT id FROM tree) RETURNING 1
		)
		SELECT COUNT(*) FROM gone
		""",
		comment_id,
	)
	removed = int(removed or 0)
	if removed:
		await conn.execute(
			f"UPDATE {tables.content} SET comment_count = GREATEST(comment_count - $2, 0) WHERE id = $1",
			content_id,
			removed,
		)
	return removed


def _record_to_comment(record: asyncpg.Record, parent_username: Optional[str] = None) -> CommentOut:
	return CommentOut(
		id=record["id"],
		entity_id=record["entity_id"],
		user_id=record["user_id"],
		username=record.get("username"),
		full_name=record.get("full_name"),
		user_profile_url=storage.presign(record.get("profile_url")),
		comment=record["comment"],
		parent_comment_id=record.get("parent_comment_id"),
		parent_username=parent_username,
		created_at=record["created_at"],
	)


def comment_from_record(
	record: asyncpg.Record,
	author: Optional[UserBrief] = None,
	parent_username: Optional[str] = None,
) -> CommentOut:
	"""Build a CommentOut for a freshly inserted row, filling author fields from `author`."""
	comment = _record_to_comment(record, parent_username=parent_username)
	if author is not None:
		comment.username = author.username
		comment.full_name = author.full_name
		comment.user_profile_url = storage.presign(author.profile_url)
	return comment


async def fetch_comment_thread(conn: asyncpg.Connection, tables: EngagementTables, content_id: UUID) -> List[CommentOut]:
	"""Top-level comments newest first, each with its replies oldest first.

	Replies to replies are flattened under their top-level comment and keep
	the name of the comment they answer in parent_username.
	"""
	rows = await conn.fetch(
		f"""
		SELECT c.id, c.{tables.fk} AS entity_id, c.user_id, c.comment, c.parent_comment_id, c.created_at,
			u.username, u.full_name, u.profile_url
		FROM {tables.comments} c
		JOIN users u ON u.id = c.user_id
		WHERE c.{tables.fk} = $1
		ORDER BY c.created_at ASC, c.id ASC
		""",
		content_id,
	)
	by_id: Dict[UUID, asyncpg.Record] = {row["id"]: row for row in rows}

	def _root(row: asyncpg.Record) -> Optional[UUID]:
		seen = set()
		current = row
		while current["parent_comment_id"] is not None:
			parent = by_id.get(current["parent_comment_id"])
			if parent is None or parent["id"] in seen:
				return None
			seen.add(parent["id"])
			current = parent
		return current["id"]

	top_level: Dict[UUID, CommentOut] = {}
	for row in rows:
		if row["parent_comment_id"] is None:
			top_level[row["id"]] = _record_to_comment(row)
	for row in rows:
		if row["parent_comment_id"] is None:
			continue
		root_id = _root(row)
		if root_id is None or root_id not in top_level:
			continue
		parent = by_id[row["parent_comment_id"]]
		parent_name = parent.get("full_name") or parent.get("username")
		top_level[root_id].replies.append(_record_to_comment(row, parent_username=parent_name))
	return sorted(top_level.values(), key=lambda item: (item.created_at, str(item.id)), reverse=True)
