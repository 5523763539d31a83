"""REST API surface for clips."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.content_errors import CONTENT_ERRORS, map_content_error
from app.domain.clips import service
from app.domain.clips.schemas import DEFAULT_CLIPS_PAGE_SIZE, ClipCreate, ClipFeed, ClipOut
from app.domain.common.schemas import CommentCreate, CommentOut, CommentPosted, LikeResult, StatusResponse
from app.infra.auth import AuthenticatedUser, get_current_user, get_optional_user

router = APIRouter(prefix="/clips", tags=["clips"])


@router.post("", response_model=ClipOut, status_code=status.HTTP_201_CREATED)
async def create_clip(payload: ClipCreate, auth_user: AuthenticatedUser = Depends(get_current_user)) -> ClipOut:
	try:
		return await service.create_clip(auth_user.id, payload.video_url, payload.description)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.get("", response_model=ClipFeed)
async def feed(
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=DEFAULT_CLIPS_PAGE_SIZE, ge=1, le=100),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> ClipFeed:
	return await service.get_clips_feed(auth_user.id if auth_user else None, page=page, limit=limit)


@router.get("/user/{user_id}", response_model=List[ClipOut])
async def user_clips(
	user_id: UUID,
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> List[ClipOut]:
	return await service.get_user_clips(str(user_id), auth_user.id if auth_user else None)


@router.post("/comments/{comment_id}/reply", response_model=CommentPosted, status_code=status.HTTP_201_CREATED)
async def reply(
	comment_id: UUID,
	payload: CommentCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> CommentPosted:
	try:
		return await service.reply_to_clip_comment(comment_id, auth_user.id, payload.comment)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.delete("/{clip_id}", response_model=StatusResponse)
async def delete_clip(clip_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> StatusResponse:
	try:
		await service.delete_clip(clip_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None
	return StatusResponse()


@router.post("/{clip_id}/like", response_model=LikeResult)
async def like(clip_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> LikeResult:
	try:
		return await service.like_clip(clip_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.delete("/{clip_id}/like", response_model=LikeResult)
async def unlike(clip_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> LikeResult:
	try:
		return await service.unlike_clip(clip_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.post("/{clip_id}/comments", response_model=CommentPosted, status_code=status.HTTP_201_CREATED)
async def add_comment(
	clip_id: UUID,
	payload: CommentCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> CommentPosted:
	try:
		return await service.add_clip_comment(clip_id, auth_user.id, payload.comment)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.get("/{clip_id}/comments", response_model=List[CommentOut])
async def comments(clip_id: UUID) -> List[CommentOut]:
	try:
		return await service.get_clip_comments(clip_id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None
