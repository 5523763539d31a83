"""Exceptions shared by the posts and clips domains."""

from __future__ import annotations

from app.infra.rate_limit import RateLimitExceeded


class ContentError(Exception):
	"""Base class for content and engagement errors."""

	reason: str = "content_error"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class ContentNotFound(ContentError):
	reason = "not_found"


class ContentForbidden(ContentError):
	reason = "forbidden"


class ContentInvalid(ContentError):
	reason = "invalid"


class ContentConflict(ContentError):
	reason = "conflict"


class AlreadyLiked(ContentConflict):
	reason = "already_liked"


class NotLiked(ContentNotFound):
	reason = "not_liked"


class CommentNotFound(ContentNotFound):
	reason = "comment_not_found"


class ParentCommentNotFound(CommentNotFound):
	reason = "parent_comment_not_found"


class AuthorNotFound(ContentNotFound):
	reason = "user_not_found"


class EngagementRateLimitExceeded(RateLimitExceeded):
	"""Raised when likes or comments arrive faster than the per-user budget."""
