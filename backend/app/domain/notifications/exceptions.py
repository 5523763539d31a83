"""Domain-level exceptions for notifications and push tokens."""

from __future__ import annotations


class NotificationError(Exception):
	"""Base class for notification errors."""

	reason: str = "notification_error"

	def __init__(self, reason: str | None = None) -> None:
		super().__init__(reason or self.reason)
		if reason:
			self.reason = reason


class NotificationInvalid(NotificationError):
	reason = "invalid_notification"


class NotificationNotFound(NotificationError):
	reason = "notification_not_found"


class FcmTokenInvalid(NotificationError):
	reason = "invalid_fcm_token"


class FcmTokenNotFound(NotificationError):
	reason = "fcm_token_not_found"
