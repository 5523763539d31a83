"""Clip-specific errors on top of the shared content errors."""

from __future__ import annotations

from app.domain.common.exceptions import ContentForbidden, ContentInvalid, ContentNotFound


class ClipNotFound(ContentNotFound):
	reason = "clip_not_found"


class ClipForbidden(ContentForbidden):
	reason = "forbidden"


class ClipInvalid(ContentInvalid):
	reason = "invalid_clip"
