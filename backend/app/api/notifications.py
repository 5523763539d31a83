"""REST API surface for notifications and push registration tokens."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.domain.common.schemas import StatusResponse
from app.domain.notifications import push, service
from app.domain.notifications.exceptions import (
	FcmTokenNotFound,
	NotificationError,
	NotificationNotFound,
)
from app.domain.notifications.models import DEFAULT_LIMIT
from app.domain.notifications.schemas import (
	FcmTokenOut,
	FcmTokenRegister,
	FcmTokenRemove,
	MarkAllReadResult,
	NotificationList,
	NotificationOut,
	UnreadCount,
)
from app.infra.auth import AuthenticatedUser, get_current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _map_error(exc: NotificationError) -> HTTPException:
	if isinstance(exc, (NotificationNotFound, FcmTokenNotFound)):
		return HTTPException(status.HTTP_404_NOT_FOUND, detail=exc.reason)
	return HTTPException(status.HTTP_400_BAD_REQUEST, detail=exc.reason)


@router.get("", response_model=NotificationList)
async def list_notifications(
	limit: Optional[int] = Query(default=DEFAULT_LIMIT),
	offset: Optional[int] = Query(default=0),
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> NotificationList:
	# out-of-range paging is clamped rather than rejected
	return await service.list_notifications(auth_user.id, limit=limit, offset=offset)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(auth_user: AuthenticatedUser = Depends(get_current_user)) -> UnreadCount:
	return UnreadCount(count=await service.unread_count(auth_user.id))


@router.put("/read-all", response_model=MarkAllReadResult)
async def mark_all_read(auth_user: AuthenticatedUser = Depends(get_current_user)) -> MarkAllReadResult:
	return MarkAllReadResult(updated=await service.mark_all_read(auth_user.id))


@router.post("/fcm-tokens", response_model=FcmTokenOut, status_code=status.HTTP_201_CREATED)
async def register_fcm_token(
	payload: FcmTokenRegister,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> FcmTokenOut:
	try:
		return await push.register_token(
			auth_user.id,
			payload.token,
			device_type=payload.device_type,
			device_id=payload.device_id,
		)
	except NotificationError as exc:
		raise _map_error(exc) from None


@router.get("/fcm-tokens", response_model=List[FcmTokenOut])
async def list_fcm_tokens(auth_user: AuthenticatedUser = Depends(get_current_user)) -> List[FcmTokenOut]:
	return await push.list_tokens(auth_user.id)


@router.delete("/fcm-tokens", response_model=StatusResponse)
async def remove_fcm_token(
	payload: FcmTokenRemove,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	try:
		await push.remove_token(auth_user.id, payload.token)
	except NotificationError as exc:
		raise _map_error(exc) from None
	return StatusResponse()


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
	notification_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> NotificationOut:
	try:
		return await service.mark_read(notification_id, auth_user.id)
	except NotificationError as exc:
		raise _map_error(exc) from None


@router.delete("/{notification_id}", response_model=StatusResponse)
async def delete_notification(
	notification_id: UUID,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> StatusResponse:
	try:
		await service.delete_notification(notification_id, auth_user.id)
	except NotificationError as exc:
		raise _map_error(exc) from None
	return StatusResponse()
