"""Identity errors carry the HTTP status they map to."""

from __future__ import annotations

from app.domain.identity.models import MSG_ACCOUNT_DELETED, MSG_INVALID_CREDENTIALS
from app.infra.rate_limit import RateLimitExceeded


class IdentityError(Exception):
	"""Raised for identity failures with an HTTP status mapping."""

	def __init__(self, reason: str, *, status_code: int = 400):
		super().__init__(reason)
		self.reason = reason
		self.status_code = status_code


class IdentityInvalid(IdentityError):
	def __init__(self, reason: str) -> None:
		super().__init__(reason, status_code=400)


class SignupConflict(IdentityError):
	def __init__(self, reason: str) -> None:
		super().__init__(reason, status_code=409)


class OtpInvalid(IdentityError):
	def __init__(self, reason: str = "Invalid OTP") -> None:
		super().__init__(reason, status_code=400)


class LoginFailed(IdentityError):
	def __init__(self, reason: str = MSG_INVALID_CREDENTIALS) -> None:
		super().__init__(reason, status_code=401)


class AccountDeleted(IdentityError):
	def __init__(self) -> None:
		super().__init__(MSG_ACCOUNT_DELETED, status_code=403)


class RefreshInvalid(IdentityError):
	def __init__(self, reason: str = "invalid_refresh_token") -> None:
		super().__init__(reason, status_code=401)


class UserNotFound(IdentityError):
	def __init__(self, reason: str = "User not found") -> None:
		super().__init__(reason, status_code=404)


class IdentityRateLimitExceeded(RateLimitExceeded):
	"""Raised when login or OTP requests exhaust their bucket."""
