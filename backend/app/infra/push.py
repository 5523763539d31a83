"""Firebase Cloud Messaging delivery via firebase-admin."""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from app.settings import settings

logger = logging.getLogger(__name__)

# FCM caps a multicast at 500 registration tokens
MULTICAST_BATCH = 500

_app: Optional[firebase_admin.App] = None
_app_lock = threading.Lock()


@dataclass(slots=True)
class MulticastResult:
	success_count: int = 0
	failure_count: int = 0
	invalid_tokens: list[str] = field(default_factory=list)

	def merge(self, other: "MulticastResult") -> None:
		self.success_count += other.success_count
		self.failure_count += other.failure_count
		self.invalid_tokens.extend(other.invalid_tokens)


def is_enabled() -> bool:
	return bool(settings.fcm_enabled)


def _get_app() -> firebase_admin.App:
	global _app
	with _app_lock:
		if _app is None:
			cred = (
				credentials.Certificate(settings.firebase_credentials_file)
				if settings.firebase_credentials_file
				else credentials.ApplicationDefault()
			)
			_app = firebase_admin.initialize_app(cred, name="athlinked-push")
	return _app


def is_invalid_token_error(exc: BaseException | None) -> bool:
	"""Errors that mean the registration token will never work again."""
	return isinstance(
		exc,
		(
			messaging.UnregisteredError,
			messaging.SenderIdMismatchError,
			firebase_exceptions.InvalidArgumentError,
		),
	)


def stringify_data(data: Mapping[str, object] | None) -> dict[str, str]:
	"""FCM data payloads only carry string values."""
	if not data:
		return {}
	return {str(key): "" if value is None else str(value) for key, value in data.items()}


def _send_batch(tokens: Sequence[str], title: str, body: str, data: dict[str, str]) -> MulticastResult:
	message = messaging.MulticastMessage(
		tokens=list(tokens),
		notification=messaging.Notification(title=title, body=body),
		data=data,
	)
	response = messaging.send_each_for_multicast(message, app=_get_app())
	result = MulticastResult(success_count=response.success_count, failure_count=response.failure_count)
	for token, item in zip(tokens, response.responses):
		if not item.success and is_invalid_token_error(item.exception):
			result.invalid_tokens.append(token)
	return result


async def send_multicast(
	tokens: Sequence[str],
	*,
	title: str,
	body: str,
	data: Mapping[str, object] | None = None,
) -> MulticastResult:
	result = MulticastResult()
	if not tokens:
		return result
	payload = stringify_data(data)
	for start in range(0, len(tokens), MULTICAST_BATCH):
		batch = list(tokens[start:start + MULTICAST_BATCH])
		result.merge(await asyncio.to_thread(_send_batch, batch, title, body, payload))
	return result
