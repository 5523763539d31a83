"""Domain-level exceptions for the follow/connection graph."""

from __future__ import annotations

from app.infra.rate_limit import RateLimitExceeded


class NetworkError(Exception):
	"""Base class for network feature errors."""

	reason: str = "network_error"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class NetworkSelfAction(NetworkError):
	reason = "cannot_target_self"


class NetworkUserNotFound(NetworkError):
	reason = "user_not_found"


class ConnectionRequestNotFound(NetworkError):
	reason = "connection_request_not_found"


class ConnectionNotFound(NetworkError):
	reason = "connection_not_found"


class NetworkRateLimitExceeded(RateLimitExceeded):
	"""Raised when follow or connection requests hit a quota."""
