"""Service layer for clips and their likes and comments."""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID, uuid4

import asyncpg

from app.domain.clips.exceptions import ClipForbidden, ClipInvalid, ClipNotFound
from app.domain.clips.schemas import DEFAULT_CLIPS_PAGE_SIZE, MSG_DELETE_FORBIDDEN, ClipFeed, ClipOut, Pagination
from app.domain.common import engagement, mentions
from app.domain.common.engagement import CLIP_TABLES
from app.domain.common.exceptions import AuthorNotFound, CommentNotFound, ParentCommentNotFound
from app.domain.common.feed import page_bounds, visible_to_viewer
from app.domain.common.schemas import CommentOut, CommentPosted, LikeResult
from app.domain.common.users import UserBrief, fetch_user_brief
from app.domain.notifications import service as notifications
from app.domain.notifications.models import EntityType, NotificationType
from app.infra import storage
from app.infra.postgres import affected_rows, get_pool
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_CLIP_COLUMNS = """
	c.id, c.user_id, c.username, c.user_profile_url, c.video_url, c.description,
	c.like_count, c.comment_count, c.created_at
"""


def _record_to_clip(record: asyncpg.Record) -> ClipOut:
	return ClipOut(
		id=record["id"],
		user_id=record["user_id"],
		username=record.get("username"),
		user_profile_url=storage.presign(record.get("user_profile_url")),
		video_url=storage.presign(record.get("video_url")),
		description=record.get("description"),
		like_count=int(record.get("like_count") or 0),
		comment_count=int(record.get("comment_count") or 0),
		is_liked=bool(record.get("is_liked") or False),
		created_at=record["created_at"],
	)


async def _require_clip(conn: asyncpg.Connection, clip_id: UUID, *, for_update: bool = False) -> asyncpg.Record:
	suffix = " FOR UPDATE" if for_update else ""
	record = await conn.fetchrow(f"SELECT id, user_id, video_url FROM clips WHERE id = $1{suffix}", clip_id)
	if not record:
		raise ClipNotFound()
	return record


async def _require_actor(conn: asyncpg.Connection, user_id: str) -> UserBrief:
	actor = await fetch_user_brief(conn, user_id)
	if actor is None:
		raise AuthorNotFound()
	return actor


async def create_clip(author_id: str, video_url: str, description: Optional[str] = None) -> ClipOut:
	if not video_url or not video_url.strip():
		raise ClipInvalid("video_url is required")
	video_key = storage.extract_key(video_url) or video_url
	pool = await get_pool()
	async with pool.acquire() as conn:
		author = await _require_actor(conn, author_id)
		async with conn.transaction():
			record = await conn.fetchrow(
				"""
				INSERT INTO clips (id, user_id, username, user_profile_url, video_url, description, like_count, comment_count, created_at)
				VALUES ($1, $2, $3, $4, $5, $6, 0, 0, NOW())
				RETURNING id, user_id, username, user_profile_url, video_url, description, like_count, comment_count, created_at
				""",
				uuid4(),
				author_id,
				author.display_name,
				author.profile_url,
				video_key,
				description or None,
			)
	clip = _record_to_clip(record)
	obs_metrics.inc_content_created("clip")
	await mentions.notify_mentions(
		actor_id=author_id,
		actor_name=author.display_name,
		text=description,
		entity_type=EntityType.CLIP.value,
		entity_id=str(clip.id),
		context="clip",
	)
	return clip


async def get_clips_feed(
	viewer_id: Optional[str],
	*,
	page: int = 1,
	limit: int = DEFAULT_CLIPS_PAGE_SIZE,
) -> ClipFeed:
	"""Clips visible to the viewer; anonymous viewers only see featured users."""
	page, limit, offset = page_bounds(page, limit, default_limit=DEFAULT_CLIPS_PAGE_SIZE)
	if viewer_id:
		predicate = visible_to_viewer("$1", "c.user_id", "u.is_featured")
		count_args = [viewer_id]
	else:
		predicate = "u.is_featured = TRUE"
		count_args = []
	pool = await get_pool()
	async with pool.acquire() as conn:
		total = await conn.fetchval(
			f"SELECT COUNT(*) FROM clips c JOIN users u ON u.id = c.user_id WHERE {predicate}",
			*count_args,
		)
		rows = await conn.fetch(
			f"""
			SELECT {_CLIP_COLUMNS},
				COALESCE(EXISTS (SELECT 1 FROM clip_likes cl WHERE cl.clip_id = c.id AND cl.user_id = $1), FALSE) AS is_liked
			FROM clips c
			JOIN users u ON u.id = c.user_id
			WHERE {predicate}
			ORDER BY c.created_at DESC
			LIMIT $2 OFFSET $3
			""",
			viewer_id,
			limit,
			offset,
		)
	return ClipFeed(
		clips=[_record_to_clip(row) for row in rows],
		pagination=Pagination.build(page, limit, int(total or 0)),
	)


async def get_user_clips(user_id: str, viewer_id: Optional[str] = None) -> List[ClipOut]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT {_CLIP_COLUMNS},
				COALESCE(EXISTS (SELECT 1 FROM clip_likes cl WHERE cl.clip_id = c.id AND cl.user_id = $2), FALSE) AS is_liked
			FROM clips c
			WHERE c.user_id = $1
			ORDER BY c.created_at DESC
			""",
			user_id,
			viewer_id,
		)
	return [_record_to_clip(row) for row in rows]


async def like_clip(clip_id: UUID, user_id: str) -> LikeResult:
	await engagement.enforce_like_limits(user_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		actor = await _require_actor(conn, user_id)
		async with conn.transaction():
			clip = await _require_clip(conn, clip_id, for_update=True)
			count = await engagement.add_like(conn, CLIP_TABLES, clip_id, user_id)
	obs_metrics.inc_engagement("clip", "like")
	owner_id = str(clip["user_id"])
	if owner_id != user_id:
		await notifications.notify(
			recipient_id=owner_id,
			actor_id=user_id,
			actor_name=actor.display_name,
			kind=NotificationType.LIKE.value,
			entity_type=EntityType.CLIP.value,
			entity_id=str(clip_id),
			message=f"{actor.display_name} liked your clip",
		)
	return LikeResult(liked=True, like_count=count)


async def unlike_clip(clip_id: UUID, user_id: str) -> LikeResult:
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			await _require_clip(conn, clip_id, for_update=True)
			count = await engagement.remove_like(conn, CLIP_TABLES, clip_id, user_id)
	obs_metrics.inc_engagement("clip", "unlike")
	return LikeResult(liked=False, like_count=count)


async def add_clip_comment(clip_id: UUID, user_id: str, text: str) -> CommentPosted:
	text = (text or "").strip()
	if not text:
		raise ClipInvalid("comment_required")
	await engagement.enforce_comment_limits(user_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		actor = await _require_actor(conn, user_id)
		async with conn.transaction():
			clip = await _require_clip(conn, clip_id, for_update=True)
			record, count = await engagement.insert_comment(conn, CLIP_TABLES, clip_id, user_id, text)
	comment = engagement.comment_from_record(record, actor)
	obs_metrics.inc_engagement("clip", "comment")

	owner_id = str(clip["user_id"])
	if owner_id != user_id:
		await notifications.notify(
			recipient_id=owner_id,
			actor_id=user_id,
			actor_name=actor.display_name,
			kind=NotificationType.COMMENT.value,
			entity_type=EntityType.CLIP.value,
			entity_id=str(clip_id),
			message=f"{actor.display_name} commented on your clip",
		)
	await mentions.notify_mentions(
		actor_id=user_id,
		actor_name=actor.display_name,
		text=text,
		entity_type=EntityType.COMMENT.value,
		entity_id=str(comment.id),
		context="comment",
	)
	return CommentPosted(comment=comment, comment_count=count)


async def reply_to_clip_comment(parent_comment_id: UUID, user_id: str, text: str) -> CommentPosted:
	text = (text or "").strip()
	if not text:
		raise ClipInvalid("comment_required")
	await engagement.enforce_comment_limits(user_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		actor = await _require_actor(conn, user_id)
		async with conn.transaction():
			try:
				parent = await engagement.get_comment(conn, CLIP_TABLES, parent_comment_id)
			except CommentNotFound:
				raise ParentCommentNotFound("Parent comment not found") from None
			clip_id = parent["entity_id"]
			await _require_clip(conn, clip_id, for_update=True)
			record, count = await engagement.insert_comment(
				conn, CLIP_TABLES, clip_id, user_id, text, parent_comment_id=parent_comment_id
			)
	parent_name = parent.get("full_name") or parent.get("username")
	comment = engagement.comment_from_record(record, actor, parent_username=parent_name)
	obs_metrics.inc_engagement("clip", "reply")

	parent_author = str(parent["user_id"])
	if parent_author != user_id:
		await notifications.notify(
			recipient_id=parent_author,
			actor_id=user_id,
			actor_name=actor.display_name,
			kind=NotificationType.COMMENT.value,
			entity_type=EntityType.COMMENT.value,
			entity_id=str(parent_comment_id),
			message=f"{actor.display_name} replied to your comment",
		)
	await mentions.notify_mentions(
		actor_id=user_id,
		actor_name=actor.display_name,
		text=text,
		entity_type=EntityType.COMMENT.value,
		entity_id=str(comment.id),
		context="comment",
		exclude=(parent_author,),
	)
	return CommentPosted(comment=comment, comment_count=count)


async def get_clip_comments(clip_id: UUID) -> List[CommentOut]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		await _require_clip(conn, clip_id)
		return await engagement.fetch_comment_thread(conn, CLIP_TABLES, clip_id)


async def delete_clip(clip_id: UUID, user_id: str) -> None:
	pool = await get_pool()
	async with pool.acquire() as conn:
		clip = await _require_clip(conn, clip_id)
		if str(clip["user_id"]) != user_id:
			raise ClipForbidden(MSG_DELETE_FORBIDDEN)

		if clip["video_url"]:
			try:
				await storage.delete(clip["video_url"])
			except Exception:
				logger.warning("clip_video_delete_failed", extra={"clip_id": str(clip_id)}, exc_info=True)

		async with conn.transaction():
			await conn.execute("DELETE FROM clip_likes WHERE clip_id = $1", clip_id)
			await conn.execute("DELETE FROM clip_comments WHERE clip_id = $1", clip_id)
			status = await conn.execute("DELETE FROM clips WHERE id = $1", clip_id)
	if affected_rows(status) == 0:
		raise ClipNotFound()
	obs_metrics.inc_content_deleted("clip")
