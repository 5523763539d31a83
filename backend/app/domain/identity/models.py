"""Domain models for accounts and authentication."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

RecordLike = Mapping[str, Any]


class UserType(str, Enum):
	ATHLETE = "athlete"
	COACH = "coach"
	ORGANIZATION = "organization"
	PARENT = "parent"


# parents sign up through the child's invite link, never through Google
GOOGLE_USER_TYPES = frozenset({UserType.ATHLETE.value, UserType.COACH.value, UserType.ORGANIZATION.value})

MIN_USERNAME_LENGTH = 6
OTP_DIGITS = 6

MSG_EMAIL_TAKEN = "Email already registered"
MSG_USERNAME_TAKEN = "Username already taken"
MSG_USERNAME_TOO_SHORT = "Username must be at least 6 characters long"
MSG_PARENT_EMAIL_REQUIRED = "Parent email is required when using username"
MSG_INVALID_CREDENTIALS = "Invalid email/username or password"
MSG_ACCOUNT_DELETED = "ACCOUNT_DELETED"
MSG_OTP_SENT = "OTP sent to email"


def is_email(identifier: str | None) -> bool:
	return bool(identifier) and "@" in identifier


def normalise_identifier(identifier: str) -> str:
	return identifier.strip().lower()


@dataclass(slots=True)
class User:
	"""Core user record."""

	id: str
	email: Optional[str]
	username: Optional[str]
	full_name: Optional[str]
	user_type: Optional[str]
	password_hash: Optional[str] = None
	google_id: Optional[str] = None
	email_verified: bool = False
	profile_url: Optional[str] = None
	parent_email: Optional[str] = None
	followers: int = 0
	following: int = 0
	is_featured: bool = False
	created_at: Optional[datetime] = None

	@classmethod
	def from_record(cls, record: RecordLike) -> "User":
		return cls(
			id=str(record["id"]),
			email=record.get("email"),
			username=record.get("username"),
			full_name=record.get("full_name"),
			user_type=record.get("user_type"),
			password_hash=record.get("password_hash"),
			google_id=record.get("google_id"),
			email_verified=bool(record.get("email_verified") or False),
			profile_url=record.get("profile_url"),
			parent_email=record.get("parent_email"),
			followers=int(record.get("followers") or 0),
			following=int(record.get("following") or 0),
			is_featured=bool(record.get("is_featured") or False),
			created_at=record.get("created_at"),
		)

	@property
	def contact_email(self) -> Optional[str]:
		"""Where account mail goes: the user's email, else the parent's for username accounts."""
		return self.email or self.parent_email
