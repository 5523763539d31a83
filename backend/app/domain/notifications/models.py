"""Notification types, entity kinds and listing limits."""

from __future__ import annotations

from enum import Enum


class NotificationType(str, Enum):
	LIKE = "like"
	COMMENT = "comment"
	MENTION = "mention"
	FOLLOW = "follow"
	FOLLOW_REQUEST = "follow_request"
	FOLLOW_ACCEPTED = "follow_accepted"
	CONNECTION_REQUEST = "connection_request"
	CONNECTION_ACCEPTED = "connection_accepted"


class EntityType(str, Enum):
	POST = "post"
	CLIP = "clip"
	COMMENT = "comment"
	PROFILE = "profile"


NOTIFICATION_TYPES = frozenset(item.value for item in NotificationType)
ENTITY_TYPES = frozenset(item.value for item in EntityType)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


PUSH_TITLES = {
	NotificationType.LIKE.value: "New like",
	NotificationType.COMMENT.value: "New comment",
	NotificationType.MENTION.value: "You were mentioned",
	NotificationType.FOLLOW.value: "New follower",
	NotificationType.FOLLOW_REQUEST.value: "Follow request",
	NotificationType.FOLLOW_ACCEPTED.value: "Follow request accepted",
	NotificationType.CONNECTION_REQUEST.value: "Connection request",
	NotificationType.CONNECTION_ACCEPTED.value: "Connection accepted",
}


def clamp_page(limit: int | None, offset: int | None) -> tuple[int, int]:
	"""Clamp listing limit to 1..MAX_LIMIT (default DEFAULT_LIMIT) and offset to >= 0."""
	if limit is None:
		limit = DEFAULT_LIMIT
	limit = max(1, min(int(limit), MAX_LIMIT))
	offset = max(0, int(offset or 0))
	return limit, offset
