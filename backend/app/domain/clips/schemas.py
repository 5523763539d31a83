"""Pydantic models for clip endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

DEFAULT_CLIPS_PAGE_SIZE = 10
MSG_DELETE_FORBIDDEN = "Unauthorized: You can only delete your own clips"


class ClipCreate(BaseModel):
	video_url: str = Field(..., min_length=1)
	description: Optional[str] = Field(default=None, max_length=2000)


class ClipOut(BaseModel):
	id: UUID
	user_id: UUID
	username: Optional[str] = None
	user_profile_url: Optional[str] = None
	video_url: Optional[str] = None
	description: Optional[str] = None
	like_count: int = 0
	comment_count: int = 0
	is_liked: bool = False
	created_at: datetime


class Pagination(BaseModel):
	page: int
	limit: int
	total: int
	total_pages: int
	has_next: bool
	has_prev: bool

	@classmethod
	def build(cls, page: int, limit: int, total: int) -> "Pagination":
		total_pages = -(-total // limit) if limit else 0
		return cls(
			page=page,
			limit=limit,
			total=total,
			total_pages=total_pages,
			has_next=page < total_pages,
			has_prev=page > 1,
		)


class ClipFeed(BaseModel):
	clips: List[ClipOut]
	pagination: Pagination
