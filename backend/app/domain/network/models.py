"""Constants and value types for the follow/connection graph."""

from __future__ import annotations

from enum import Enum
from uuid import UUID


class NetworkStatus(str, Enum):
	FOLLOWING = "following"
	UNFOLLOWED = "unfollowed"
	CONNECTED = "connected"
	DISCONNECTED = "disconnected"


FOLLOW_PER_MINUTE = 30
CONNECTION_REQUESTS_PER_HOUR = 50

MSG_ALREADY_CONNECTED = "Already connected"
MSG_REQUEST_PENDING = "Connection request already pending"
MSG_REQUEST_EXISTS = "Connection request already exists"
MSG_REQUEST_SENT = "Connection request sent"


def canonical_id(value: UUID | str) -> str:
	return str(UUID(str(value)))


def normalize_pair(user_a: UUID | str, user_b: UUID | str) -> tuple[str, str]:
	"""Order a pair so user_id_1 < user_id_2, matching Postgres uuid ordering."""
	a, b = canonical_id(user_a), canonical_id(user_b)
	return (a, b) if a < b else (b, a)
