"""Pydantic models for post endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class PostCreate(BaseModel):
	# validated by the service so an unknown type maps to 400
	post_type: str = "text"
	caption: Optional[str] = Field(default=None, max_length=5000)
	media_url: Optional[str] = None
	article_title: Optional[str] = Field(default=None, max_length=300)
	article_body: Optional[str] = None
	event_title: Optional[str] = Field(default=None, max_length=300)
	event_date: Optional[datetime] = None
	event_location: Optional[str] = Field(default=None, max_length=300)
	event_type: Optional[str] = Field(default=None, max_length=100)


class PostOut(BaseModel):
	id: UUID
	user_id: UUID
	username: Optional[str] = None
	user_profile_url: Optional[str] = None
	user_type: Optional[str] = None
	post_type: str
	caption: Optional[str] = None
	media_url: Optional[str] = None
	article_title: Optional[str] = None
	article_body: Optional[str] = None
	event_title: Optional[str] = None
	event_date: Optional[datetime] = None
	event_location: Optional[str] = None
	event_type: Optional[str] = None
	like_count: int = 0
	comment_count: int = 0
	save_count: int = 0
	is_liked: bool = False
	is_saved: bool = False
	created_at: datetime
	saved_at: Optional[datetime] = None


class PostList(BaseModel):
	posts: List[PostOut]
	page: int
	limit: int


class SaveResult(BaseModel):
	saved: bool
	save_count: int
