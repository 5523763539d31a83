"""REST API surface for follows and connections."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.domain.common.schemas import StatusResponse
from app.domain.network import service
from app.domain.network.exceptions import (
	ConnectionNotFound,
	ConnectionRequestNotFound,
	NetworkRateLimitExceeded,
	NetworkSelfAction,
	NetworkUserNotFound,
)
from app.domain.network.schemas import (
	ConnectionRequestOut,
	ConnectionRequestResult,
	ConnectionStatus,
	FollowCounts,
	FollowResult,
	IsFollowing,
	NetworkUser,
)
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/network", tags=["network"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, NetworkRateLimitExceeded):
		return HTTPException(status.HTTP_429_TOO_MANY_REQUESTS, detail=getattr(exc, "reason", "rate_limited"))
	if isinstance(exc, NetworkSelfAction):
		return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)
	if isinstance(exc, (NetworkUserNotFound, ConnectionRequestNotFound, ConnectionNotFound)):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=exc.reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=getattr(exc, "reason", str(exc)))


_ERRORS = (NetworkRateLimitExceeded, NetworkSelfAction, NetworkUserNotFound, ConnectionRequestNotFound, ConnectionNotFound)


@router.post("/follow/{user_id}", response_model=FollowResult)
async def follow(user_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> FollowResult:
	try:
		created = await service.follow_user(auth_user.id, str(user_id))
	except _ERRORS as exc:
		raise _map_error(exc) from None
	message = "Successfully followed user" if created else "Already following this user"
	return FollowResult(success=True, is_following=True, message=message)


@router.post("/unfollow/{user_id}", response_model=FollowResult)
async def unfollow(user_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> FollowResult:
	try:
		removed = await service.unfollow_user(auth_user.id, str(user_id))
	except _ERRORS as exc:
		raise _map_error(exc) from None
	message = "Successfully unfollowed user" if removed else "Not following this user"
	return FollowResult(success=removed, is_following=False, message=message)


@router.get("/followers/{user_id}", response_model=List[NetworkUser])
async def followers(user_id: UUID, _: AuthenticatedUser = Depends(get_current_user)) -> List[NetworkUser]:
	return await service.get_followers(str(user_id))


@router.get("/following/{user_id}", response_model=List[NetworkUser])
async def following(user_id: UUID, _: AuthenticatedUser = Depends(get_current_user)) -> List[NetworkUser]:
	return await service.get_following(str(user_id))


@router.get("/counts/{user_id}", response_model=FollowCounts)
async def counts(user_id: UUID, _: AuthenticatedUser = Depends(get_current_user)) -> FollowCounts:
	return await service.get_follow_counts(str(user_id))


@router.get("/is-following/{user_id}", response_model=IsFollowing)
async def is_following(user_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> IsFollowing:
	return IsFollowing(is_following=await service.is_following(auth_user.id, str(user_id)))


@router.post("/connections/request/{user_id}", response_model=ConnectionRequestResult)
async def request_connection(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ConnectionRequestResult:
	try:
		return await service.send_connection_request(auth_user.id, str(user_id))
	except _ERRORS as exc:
		raise _map_error(exc) from None


@router.post("/connections/requests/{request_id}/accept", response_model=ConnectionRequestOut)
async def accept_request(
	request_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ConnectionRequestOut:
	try:
		return await service.accept_connection_request(request_id, auth_user.id)
	except _ERRORS as exc:
		raise _map_error(exc) from None


@router.post("/connections/requests/{request_id}/reject", response_model=StatusResponse)
async def reject_request(
	request_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	try:
		await service.reject_connection_request(request_id, auth_user.id)
	except _ERRORS as exc:
		raise _map_error(exc) from None
	return StatusResponse()


@router.get("/connections/requests", response_model=List[ConnectionRequestOut])
async def pending_requests(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[ConnectionRequestOut]:
	return await service.get_connection_requests(auth_user.id)


@router.get("/connections/status/{user_id}", response_model=ConnectionStatus)
async def connection_status(
	user_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> ConnectionStatus:
	return await service.check_connection_request_status(auth_user.id, str(user_id))


@router.get("/connections", response_model=List[NetworkUser])
async def connections(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[NetworkUser]:
	return await service.get_connections(auth_user.id)


@router.delete("/connections/{user_id}", response_model=StatusResponse)
async def disconnect(user_id: UUID, auth_user: AuthenticatedUser = Depends(get_current_user)) -> StatusResponse:
	try:
		await service.disconnect(auth_user.id, str(user_id))
	except _ERRORS as exc:
		raise _map_error(exc) from None
	return StatusResponse()
