"""Lightweight user lookups shared across domains."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import asyncpg

USER_BRIEF_COLUMNS = "id, username, full_name, profile_url, user_type, email, parent_email, is_featured"


@dataclass(slots=True)
class UserBrief:
	id: str
	username: Optional[str]
	full_name: Optional[str]
	profile_url: Optional[str]
	user_type: Optional[str]
	email: Optional[str] = None
	parent_email: Optional[str] = None
	is_featured: bool = False

	@classmethod
	def from_record(cls, record: asyncpg.Record) -> "UserBrief":
		return cls(
			id=str(record["id"]),
			username=record.get("username"),
			full_name=record.get("full_name"),
			profile_url=record.get("profile_url"),
			user_type=record.get("user_type"),
			email=record.get("email"),
			parent_email=record.get("parent_email"),
			is_featured=bool(record.get("is_featured") or False),
		)

	@property
	def display_name(self) -> str:
		"""Name used in notification messages."""
		return (self.full_name or "").strip() or (self.username or "").strip() or "User"

	@property
	def handle(self) -> str:
		"""Name denormalized onto follow edges."""
		return (self.username or "").strip() or (self.full_name or "").strip() or "User"


async def fetch_user_brief(conn: asyncpg.Connection, user_id: str) -> Optional[UserBrief]:
	record = await conn.fetchrow(f"SELECT {USER_BRIEF_COLUMNS} FROM users WHERE id = $1", user_id)
	return UserBrief.from_record(record) if record else None
