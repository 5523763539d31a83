"""Schemas shared by posts and clips engagement endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class CommentCreate(BaseModel):
	comment: str = Field(..., min_length=1, max_length=2000)


class CommentOut(BaseModel):
	id: UUID
	entity_id: UUID
	user_id: UUID
	username: Optional[str] = None
	full_name: Optional[str] = None
	user_profile_url: Optional[str] = None
	comment: str
	parent_comment_id: Optional[UUID] = None
	parent_username: Optional[str] = None
	created_at: datetime
	replies: List["CommentOut"] = Field(default_factory=list)


class LikeResult(BaseModel):
	liked: bool
	like_count: int


class StatusResponse(BaseModel):
	status: str = "ok"


CommentOut.model_rebuild()


class CommentPosted(BaseModel):
	comment: CommentOut
	comment_count: int


class CommentDeleted(BaseModel):
	deleted: bool = True
	comment_count: int
