"""Post types and user-facing messages."""

from __future__ import annotations

from enum import Enum


class PostType(str, Enum):
	PHOTO = "photo"
	VIDEO = "video"
	ARTICLE = "article"
	EVENT = "event"
	TEXT = "text"


POST_TYPES = frozenset(item.value for item in PostType)
MEDIA_POST_TYPES = frozenset({PostType.PHOTO.value, PostType.VIDEO.value})

MSG_INVALID_TYPE = "Invalid post_type. Must be photo, video, article, event, or text"
MSG_DELETE_FORBIDDEN = "Unauthorized: You can only delete your own posts"
MSG_PARENT_COMMENT_NOT_FOUND = "Parent comment not found"

SAVED_POSTS_LIMIT = 50


def is_post_type(value: str | None) -> bool:
	return value in POST_TYPES
