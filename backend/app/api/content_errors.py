"""HTTP mapping for post and clip errors."""

from __future__ import annotations

from fastapi import HTTPException, status

from app.domain.common.exceptions import ContentConflict, ContentError, ContentForbidden, ContentInvalid, ContentNotFound
from app.infra.rate_limit import RateLimitExceeded


def map_content_error(exc: Exception) -> HTTPException:
	if isinstance(exc, RateLimitExceeded):
		return HTTPException(status.HTTP_429_TOO_MANY_REQUESTS, detail=exc.reason)
	if isinstance(exc, ContentNotFound):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=exc.reason)
	if isinstance(exc, ContentForbidden):
		return HTTPException(status.HTTP_403_FORBIDDEN, detail=exc.reason)
	if isinstance(exc, ContentConflict):
		return HTTPException(status.HTTP_409_CONFLICT, detail=exc.reason)
	if isinstance(exc, ContentInvalid):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=getattr(exc, "reason", str(exc)))


CONTENT_ERRORS = (ContentError, RateLimitExceeded)
