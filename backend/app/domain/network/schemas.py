"""Pydantic schemas for follows and connections."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class NetworkUser(BaseModel):
	id: UUID
	username: Optional[str] = None
	full_name: Optional[str] = None
	profile_url: Optional[str] = None
	user_type: Optional[str] = None
	since: Optional[datetime] = None


class FollowResult(BaseModel):
	success: bool
	is_following: bool
	message: str


class FollowCounts(BaseModel):
	followers: int = 0
	following: int = 0


class IsFollowing(BaseModel):
	is_following: bool


class ConnectionRequestResult(BaseModel):
	success: bool
	message: str
	request_id: Optional[UUID] = None


class ConnectionRequestOut(BaseModel):
	id: UUID
	requester_id: UUID
	receiver_id: UUID
	status: Literal["pending", "accepted", "rejected"]
	created_at: datetime
	requester_username: Optional[str] = None
	requester_full_name: Optional[str] = None
	requester_profile_url: Optional[str] = None
	requester_user_type: Optional[str] = None


class ConnectionStatus(BaseModel):
	exists: bool
	status: Optional[Literal["connected", "pending", "accepted", "rejected"]] = None
	direction: Optional[Literal["sent", "received"]] = None
	request_id: Optional[UUID] = None


class NetworkUpdatePayload(BaseModel):
	user_id: UUID
	target_id: UUID
	status: Literal["following", "unfollowed", "connected", "disconnected"]
