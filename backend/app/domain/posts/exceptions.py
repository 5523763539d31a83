"""Post-specific errors on top of the shared content errors."""

from __future__ import annotations

from app.domain.common.exceptions import ContentConflict, ContentForbidden, ContentInvalid, ContentNotFound


class PostNotFound(ContentNotFound):
	reason = "post_not_found"


class PostForbidden(ContentForbidden):
	reason = "forbidden"


class PostInvalid(ContentInvalid):
	reason = "invalid_post"


class AlreadySaved(ContentConflict):
	reason = "already_saved"


class NotSaved(ContentNotFound):
	reason = "not_saved"
