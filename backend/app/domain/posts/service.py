"""Service layer for posts, their likes, comments and saves."""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID, uuid4

import asyncpg

from app.domain.common import engagement, mentions
from app.domain.common.engagement import POST_TABLES
from app.domain.common.exceptions import AuthorNotFound, CommentNotFound, ContentForbidden, ParentCommentNotFound
from app.domain.common.feed import page_bounds, visible_to_viewer
from app.domain.common.schemas import CommentOut, CommentPosted, LikeResult
from app.domain.common.users import UserBrief, fetch_user_brief
from app.domain.notifications import service as notifications
from app.domain.notifications.models import EntityType, NotificationType
from app.domain.posts.exceptions import AlreadySaved, NotSaved, PostForbidden, PostInvalid, PostNotFound
from app.domain.posts.models import (
	MEDIA_POST_TYPES,
	MSG_DELETE_FORBIDDEN,
	MSG_INVALID_TYPE,
	MSG_PARENT_COMMENT_NOT_FOUND,
	SAVED_POSTS_LIMIT,
	PostType,
	is_post_type,
)
from app.domain.posts.schemas import PostCreate, PostOut, SaveResult
from app.infra import storage
from app.infra.postgres import affected_rows, get_pool
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)

_POST_COLUMNS = """
	p.id, p.user_id, p.username, p.user_profile_url, p.user_type, p.post_type, p.caption, p.media_url,
	p.article_title, p.article_body, p.event_title, p.event_date, p.event_location, p.event_type,
	p.like_count, p.comment_count, p.save_count, p.created_at
"""

# $1 is the viewer (may be NULL)
_VIEWER_FLAGS = """
	COALESCE(EXISTS (SELECT 1 FROM post_likes pl WHERE pl.post_id = p.id AND pl.user_id = $1), FALSE) AS is_liked,
	COALESCE(EXISTS (SELECT 1 FROM post_saves ps WHERE ps.post_id = p.id AND ps.user_id = $1), FALSE) AS is_saved
"""


def _record_to_post(record: asyncpg.Record) -> PostOut:
	return PostOut(
		id=record["id"],
		user_id=record["user_id"],
		username=record.get("username"),
		user_profile_url=storage.presign(record.get("user_profile_url")),
		user_type=record.get("user_type"),
		post_type=record["post_type"],
		caption=record.get("caption"),
		media_url=storage.presign(record.get("media_url")),
		article_title=record.get("article_title"),
		article_body=record.get("article_body"),
		event_title=record.get("event_title"),
		event_date=record.get("event_date"),
		event_location=record.get("event_location"),
		event_type=record.get("event_type"),
		like_count=int(record.get("like_count") or 0),
		comment_count=int(record.get("comment_count") or 0),
		save_count=int(record.get("save_count") or 0),
		is_liked=bool(record.get("is_liked") or False),
		is_saved=bool(record.get("is_saved") or False),
		created_at=record["created_at"],
		saved_at=record.get("saved_at"),
	)


def _blank(value: Optional[str]) -> bool:
	return not value or not value.strip()


def validate_post(payload: PostCreate) -> None:
	"""Check the fields each post type requires."""
	if not is_post_type(payload.post_type):
		raise PostInvalid(MSG_INVALID_TYPE)
	if payload.post_type in MEDIA_POST_TYPES and _blank(payload.media_url):
		raise PostInvalid("media_url is required for photo and video posts")
	if payload.post_type == PostType.ARTICLE.value and _blank(payload.article_title):
		raise PostInvalid("article_title is required for article posts")
	if payload.post_type == PostType.EVENT.value and _blank(payload.event_title):
		raise PostInvalid("event_title is required for event posts")
	if payload.post_type == PostType.TEXT.value and _blank(payload.caption):
		raise PostInvalid("caption is required for text posts")


async def _require_post(conn: asyncpg.Connection, post_id: UUID, *, for_update: bool = False) -> asyncpg.Record:
	suffix = " FOR UPDATE" if for_update else ""
	record = await conn.fetchrow(
		f"SELECT id, user_id, media_url FROM posts WHERE id = $1 AND is_active = TRUE{suffix}",
		post_id,
	)
	if not record:
		raise PostNotFound()
	return record


async def _require_actor(conn: asyncpg.Connection, user_id: str) -> UserBrief:
	actor = await fetch_user_brief(conn, user_id)
	if actor is None:
		raise AuthorNotFound()
	return actor


async def create_post(author_id: str, payload: PostCreate) -> PostOut:
	validate_post(payload)
	# media is stored as an object key; presigned on read
	media_key = storage.extract_key(payload.media_url) if payload.media_url else None
	pool = await get_pool()
	async with pool.acquire() as conn:
		author = await _require_actor(conn, author_id)
		async with conn.transaction():
			record = await conn.fetchrow(
				f"""
				INSERT INTO posts (
					id, user_id, username, user_profile_url, user_type, post_type, caption, media_url,
					article_title, article_body, event_title, event_date, event_location, event_type,
					like_count, comment_count, save_count, is_active, created_at
				)
				VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, 0, 0, 0, TRUE, NOW())
				RETURNING {_POST_COLUMNS.replace("p.", "")}
				""",
				uuid4(),
				author_id,
				author.display_name,
				author.profile_url,
				author.user_type or "athlete",
				payload.post_type,
				payload.caption,
				media_key or payload.media_url,
				payload.article_title,
				payload.article_body,
				payload.event_title,
				payload.event_date,
				payload.event_location,
				payload.event_type,
			)
	post = _record_to_post(record)
	obs_metrics.inc_content_created("post", payload.post_type)
	await mentions.notify_mentions(
		actor_id=author_id,
		actor_name=author.display_name,
		text=payload.caption or payload.article_body,
		entity_type=EntityType.POST.value,
		entity_id=str(post.id),
		context="post",
	)
	return post


async def get_posts_feed(
	viewer_id: Optional[str],
	*,
	page: int = 1,
	limit: int = 50,
	post_type: Optional[str] = None,
) -> List[PostOut]:
	"""Active posts visible to the viewer, newest first."""
	if post_type and not is_post_type(post_type):
		raise PostInvalid(MSG_INVALID_TYPE)
	if not viewer_id:
		return []
	_, limit, offset = page_bounds(page, limit)
	args: list = [viewer_id, limit, offset]
	type_filter = ""
	if post_type:
		args.append(post_type)
		type_filter = "AND p.post_type = $4"
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT {_POST_COLUMNS}, {_VIEWER_FLAGS}
			FROM posts p
			JOIN users u ON u.id = p.user_id
			WHERE p.is_active = TRUE
				AND {visible_to_viewer("$1", "p.user_id", "u.is_featured")}
				{type_filter}
			ORDER BY p.created_at DESC
			LIMIT $2 OFFSET $3
			""",
			*args,
		)
	return [_record_to_post(row) for row in rows]


async def get_post(post_id: UUID, viewer_id: Optional[str] = None) -> PostOut:
	pool = await get_pool()
	async with pool.acquire() as conn:
		record = await conn.fetchrow(
			f"""
			SELECT {_POST_COLUMNS}, {_VIEWER_FLAGS}
			FROM posts p
			WHERE p.id = $2 AND p.is_active = TRUE
			""",
			viewer_id,
			post_id,
		)
	if not record:
		raise PostNotFound()
	return _record_to_post(record)


async def get_user_posts(
	user_id: str,
	viewer_id: Optional[str] = None,
	*,
	page: int = 1,
	limit: int = 50,
) -> List[PostOut]:
	_, limit, offset = page_bounds(page, limit)
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT {_POST_COLUMNS}, {_VIEWER_FLAGS}
			FROM posts p
			WHERE p.user_id = $2 AND p.is_active = TRUE
			ORDER BY p.created_at DESC
			LIMIT $3 OFFSET $4
			""",
			viewer_id,
			user_id,
			limit,
			offset,
		)
	return [_record_to_post(row) for row in rows]


async def like_post(post_id: UUID, user_id: str) -> LikeResult:
	await engagement.enforce_like_limits(user_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		actor = await _require_actor(conn, user_id)
		async with conn.transaction():
			post = await _require_post(conn, post_id, for_update=True)
			count = await engagement.add_like(conn, POST_TABLES, post_id, user_id)
	obs_metrics.inc_engagement("post", "like")
	owner_id = str(post["user_id"])
	if owner_id != user_id:
		await notifications.notify(
			recipient_id=owner_id,
			actor_id=user_id,
			actor_name=actor.display_name,
			kind=NotificationType.LIKE.value,
			entity_type=EntityType.POST.value,
			entity_id=str(post_id),
			message=f"{actor.display_name} liked your post",
		)
	return LikeResult(liked=True, like_count=count)


async def unlike_post(post_id: UUID, user_id: str) -> LikeResult:
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			await _require_post(conn, post_id, for_update=True)
			count = await engagement.remove_like(conn, POST_TABLES, post_id, user_id)
	obs_metrics.inc_engagement("post", "unlike")
	return LikeResult(liked=False, like_count=count)


async def add_comment(post_id: UUID, user_id: str, text: str) -> CommentPosted:
	text = (text or "").strip()
	if not text:
		raise PostInvalid("comment_required")
	await engagement.enforce_comment_limits(user_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		actor = await _require_actor(conn, user_id)
		async with conn.transaction():
			post = await _require_post(conn, post_id, for_update=True)
			record, count = await engagement.insert_comment(conn, POST_TABLES, post_id, user_id, text)
	comment = engagement.comment_from_record(record, actor)
	obs_metrics.inc_engagement("post", "comment")

	owner_id = str(post["user_id"])
	if owner_id != user_id:
		await notifications.notify(
			recipient_id=owner_id,
			actor_id=user_id,
			actor_name=actor.display_name,
			kind=NotificationType.COMMENT.value,
			entity_type=EntityType.POST.value,
			entity_id=str(post_id),
			message=f"{actor.display_name} commented on your post",
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


async def reply_to_comment(parent_comment_id: UUID, user_id: str, text: str) -> CommentPosted:
	"""Reply to a comment on a post; the parent author is notified."""
	text = (text or "").strip()
	if not text:
		raise PostInvalid("comment_required")
	await engagement.enforce_comment_limits(user_id)
	pool = await get_pool()
	async with pool.acquire() as conn:
		actor = await _require_actor(conn, user_id)
		async with conn.transaction():
			try:
				parent = await engagement.get_comment(conn, POST_TABLES, parent_comment_id)
			except CommentNotFound:
				raise ParentCommentNotFound(MSG_PARENT_COMMENT_NOT_FOUND) from None
			post_id = parent["entity_id"]
			await _require_post(conn, post_id, for_update=True)
			record, count = await engagement.insert_comment(
				conn, POST_TABLES, post_id, user_id, text, parent_comment_id=parent_comment_id
			)
	parent_name = parent.get("full_name") or parent.get("username")
	comment = engagement.comment_from_record(record, actor, parent_username=parent_name)
	obs_metrics.inc_engagement("post", "reply")

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


async def get_comments(post_id: UUID) -> List[CommentOut]:
	pool = await get_pool()
	async with pool.acquire() as conn:
		await _require_post(conn, post_id)
		return await engagement.fetch_comment_thread(conn, POST_TABLES, post_id)


async def delete_comment(comment_id: UUID, user_id: str) -> int:
	"""Delete one of the caller's comments with its replies; returns the post's comment_count."""
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			comment = await engagement.get_comment(conn, POST_TABLES, comment_id)
			if str(comment["user_id"]) != user_id:
				raise ContentForbidden("You can only delete your own comments")
			post_id = comment["entity_id"]
			await engagement.delete_comment_tree(conn, POST_TABLES, comment_id, post_id)
			count = await conn.fetchval("SELECT comment_count FROM posts WHERE id = $1", post_id)
	obs_metrics.inc_engagement("post", "uncomment")
	return int(count or 0)


async def save_post(post_id: UUID, user_id: str) -> SaveResult:
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			post = await _require_post(conn, post_id, for_update=True)
			created = await conn.fetchval(
				"""
				INSERT INTO post_saves (post_id, user_id, post_author_id, created_at)
				VALUES ($1, $2, $3, NOW())
				ON CONFLICT (post_id, user_id) DO NOTHING
				RETURNING post_id
				""",
				post_id,
				user_id,
				post["user_id"],
			)
			if created is None:
				raise AlreadySaved("Post already saved by this user")
			count = await conn.fetchval(
				"UPDATE posts SET save_count = save_count + 1 WHERE id = $1 RETURNING save_count",
				post_id,
			)
	obs_metrics.inc_engagement("post", "save")
	return SaveResult(saved=True, save_count=int(count or 0))


async def unsave_post(post_id: UUID, user_id: str) -> SaveResult:
	pool = await get_pool()
	async with pool.acquire() as conn:
		async with conn.transaction():
			await _require_post(conn, post_id, for_update=True)
			status = await conn.execute(
				"DELETE FROM post_saves WHERE post_id = $1 AND user_id = $2",
				post_id,
				user_id,
			)
			if affected_rows(status) == 0:
				raise NotSaved()
			count = await conn.fetchval(
				"UPDATE posts SET save_count = GREATEST(save_count - 1, 0) WHERE id = $1 RETURNING save_count",
				post_id,
			)
	obs_metrics.inc_engagement("post", "unsave")
	return SaveResult(saved=False, save_count=int(count or 0))


async def get_saved_posts(user_id: str, *, limit: int = SAVED_POSTS_LIMIT) -> List[PostOut]:
	_, limit, _ = page_bounds(1, limit, default_limit=SAVED_POSTS_LIMIT)
	pool = await get_pool()
	async with pool.acquire() as conn:
		rows = await conn.fetch(
			f"""
			SELECT {_POST_COLUMNS}, {_VIEWER_FLAGS}, s.created_at AS saved_at
			FROM post_saves s
			JOIN posts p ON p.id = s.post_id
			WHERE s.user_id = $1 AND p.is_active = TRUE
			ORDER BY s.created_at DESC
			LIMIT $2
			""",
			user_id,
			limit,
		)
	return [_record_to_post(row) for row in rows]


def can_delete(viewer: UserBrief, author: Optional[UserBrief]) -> bool:
	"""Authors may delete their posts; so may the parent account named in the author's parent_email."""
	if author is None:
		return False
	if viewer.id == author.id:
		return True
	if viewer.user_type != "parent" or not viewer.email or not author.parent_email:
		return False
	return viewer.email.strip().lower() == author.parent_email.strip().lower()


async def delete_post(post_id: UUID, user_id: str) -> None:
	pool = await get_pool()
	async with pool.acquire() as conn:
		post = await _require_post(conn, post_id)
		viewer = await _require_actor(conn, user_id)
		author = await fetch_user_brief(conn, str(post["user_id"]))
		if not can_delete(viewer, author):
			raise PostForbidden(MSG_DELETE_FORBIDDEN)

		if post["media_url"]:
			try:
				await storage.delete(post["media_url"])
			except Exception:
				logger.warning("post_media_delete_failed", extra={"post_id": str(post_id)}, exc_info=True)

		async with conn.transaction():
			await conn.execute("DELETE FROM post_likes WHERE post_id = $1", post_id)
			await conn.execute("DELETE FROM post_comments WHERE post_id = $1", post_id)
			await conn.execute("DELETE FROM post_saves WHERE post_id = $1", post_id)
			status = await conn.execute("DELETE FROM posts WHERE id = $1", post_id)
	if affected_rows(status) == 0:
		raise PostNotFound()
	obs_metrics.inc_content_deleted("post")
