"""REST API surface for posts."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from app.api.content_errors import CONTENT_ERRORS, map_content_error
from app.domain.common.schemas import CommentCreate, CommentDeleted, CommentOut, CommentPosted, LikeResult, StatusResponse
from app.domain.posts import service
from app.domain.posts.schemas import PostCreate, PostList, PostOut, SaveResult
from app.infra.auth import AuthenticatedUser, get_current_user, get_optional_user

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", response_model=PostOut, status_code=status.HTTP_201_CREATED)
async def create_post(payload: PostCreate, auth_user: AuthenticatedUser = Depends(get_current_user)) -> PostOut:
	try:
		return await service.create_post(auth_user.id, payload)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.get("", response_model=PostList)
async def feed(
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=50, ge=1, le=100),
	post_type: Optional[str] = Query(default=None),
	auth_user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> PostList:
	try:
		posts = await service.get_posts_feed(auth_user.id if auth_user else None, page=page, limit=limit, post_type=post_type)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None
	return PostList(posts=posts, page=page, limit=limit)


@router.get("/saved", response_model=List[PostOut])
async def saved_posts(
	limit: int = Query(default=50, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> List[PostOut]:
	return await service.get_saved_posts(auth_user.id, limit=limit)


@router.get("/user/{user_id}", response_model=PostList)
async def user_posts(
	user_id: UUID,
	page: int = Query(default=1, ge=1),
	limit: int = Query(default=50, ge=1, le=100),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PostList:
	posts = await service.get_user_posts(str(user_id), auth_user.id, page=page, limit=limit)
	return PostList(posts=posts, page=page, limit=limit)


@router.post("/comments/{comment_id}/reply", response_model=CommentPosted, status_code=status.HTTP_201_CREATED)
async def reply(
	comment_id: UUID,
	payload: CommentCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> CommentPosted:
	try:
		return await service.reply_to_comment(comment_id, auth_user.id, payload.comment)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.delete("/comments/{comment_id}", response_model=CommentDeleted)
async def delete_comment(comment_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> CommentDeleted:
	try:
		count = await service.delete_comment(comment_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None
	return CommentDeleted(comment_count=count)


@router.get("/{post_id}", response_model=PostOut)
async def get_post(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> PostOut:
	try:
		return await service.get_post(post_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.delete("/{post_id}", response_model=StatusResponse)
async def delete_post(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> StatusResponse:
	try:
		await service.delete_post(post_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None
	return StatusResponse()


@router.post("/{post_id}/like", response_model=LikeResult)
async def like(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> LikeResult:
	try:
		return await service.like_post(post_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.delete("/{post_id}/like", response_model=LikeResult)
async def unlike(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> LikeResult:
	try:
		return await service.unlike_post(post_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.post("/{post_id}/comments", response_model=CommentPosted, status_code=status.HTTP_201_CREATED)
async def add_comment(
	post_id: UUID,
	payload: CommentCreate,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> CommentPosted:
	try:
		return await service.add_comment(post_id, auth_user.id, payload.comment)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.get("/{post_id}/comments", response_model=List[CommentOut])
async def comments(post_id: UUID, _: AuthenticatedUser = Depends(get_current_user)) -> List[CommentOut]:
	try:
		return await service.get_comments(post_id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.post("/{post_id}/save", response_model=SaveResult)
async def save(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> SaveResult:
	try:
		return await service.save_post(post_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None


@router.delete("/{post_id}/save", response_model=SaveResult)
async def unsave(post_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> SaveResult:
	try:
		return await service.unsave_post(post_id, auth_user.id)
	except CONTENT_ERRORS as exc:
		raise map_content_error(exc) from None
