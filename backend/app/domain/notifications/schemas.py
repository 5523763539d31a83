"""Pydantic schemas for notifications and FCM tokens."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationOut(BaseModel):
	id: UUID
	recipient_user_id: UUID
	actor_user_id: UUID
	actor_full_name: str
	type: str
	entity_type: str
	entity_id: str
	message: str
	is_read: bool = False
	created_at: datetime


class NotificationList(BaseModel):
	notifications: List[NotificationOut]
	limit: int
	offset: int
	unread_count: int


class UnreadCount(BaseModel):
	count: int


class MarkAllReadResult(BaseModel):
	updated: int


class FcmTokenRegister(BaseModel):
	token: str = Field(..., min_length=1, max_length=4096, description="FCM registration token")
	device_type: Optional[Literal["ios", "android", "web"]] = None
	device_id: Optional[str] = Field(default=None, max_length=255)


class FcmTokenRemove(BaseModel):
	token: str = Field(..., min_length=1, max_length=4096)


class FcmTokenOut(BaseModel):
	id: UUID
	token: str
	device_type: Optional[str] = None
	device_id: Optional[str] = None
	created_at: datetime
	updated_at: datetime


class PushSummary(BaseModel):
	success_count: int = 0
	failure_count: int = 0
	invalid_tokens: List[str] = Field(default_factory=list)
	per_user: Dict[str, int] = Field(default_factory=dict)


class NotificationCountPayload(BaseModel):
	unread_count: int
