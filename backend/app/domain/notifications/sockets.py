"""Socket.IO namespace delivering notifications to each user's room."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

import socketio
from fastapi import HTTPException

from app.domain.notifications.schemas import NotificationCountPayload
from app.infra.auth import AuthenticatedUser, verify_access_jwt
from app.obs import metrics as obs_metrics
from app.settings import settings

NAMESPACE = "/notifications"

_namespace: "NotificationsNamespace" | None = None


def _header(scope: dict, name: str) -> Optional[str]:
	target = name.encode().lower()
	for key, value in scope.get("headers", []):
		if key.lower() == target:
			return value.decode()
	return None


def _authenticate(auth_payload: dict, scope: dict) -> AuthenticatedUser:
	token = auth_payload.get("token")
	if not token:
		header = _header(scope, "authorization") or ""
		if header.lower().startswith("bearer "):
			token = header.split(" ", 1)[1]
	if token:
		try:
			return verify_access_jwt(token)
		except HTTPException:
			raise ConnectionRefusedError("invalid_token") from None
	user_id = auth_payload.get("userId") or _header(scope, "x-user-id")
	if user_id and settings.is_dev():
		try:
			return AuthenticatedUser(id=str(UUID(str(user_id))))
		except ValueError:
			raise ConnectionRefusedError("invalid_user_id") from None
	raise ConnectionRefusedError("unauthenticated")


class NotificationsNamespace(socketio.AsyncNamespace):
	"""Namespace that keeps each client in their personal room."""

	def __init__(self) -> None:
		super().__init__(NAMESPACE)
		self._sessions: dict[str, AuthenticatedUser] = {}

	async def on_connect(self, sid: str, environ: dict, auth: Optional[dict] = None) -> None:
		scope = environ.get("asgi.scope", environ)
		user = _authenticate(auth or {}, scope)
		obs_metrics.socket_connected(self.namespace)
		self._sessions[sid] = user
		await self.enter_room(sid, self.user_room(user.id))
		await self.emit("notification:ack", {"ok": True}, room=sid)

	async def on_disconnect(self, sid: str, *args) -> None:
		user = self._sessions.pop(sid, None)
		if user:
			obs_metrics.socket_disconnected(self.namespace)
			await self.leave_room(sid, self.user_room(user.id))

	@staticmethod
	def user_room(user_id: str) -> str:
		return f"user:{user_id}"


def set_namespace(ns: NotificationsNamespace | None) -> None:
	global _namespace
	_namespace = ns


async def _emit(user_id: str, event: str, payload: dict) -> None:
	if _namespace is None:
		return
	obs_metrics.socket_event(_namespace.namespace, event)
	await _namespace.emit(event, payload, room=NotificationsNamespace.user_room(user_id))


async def emit_notification_new(user_id: str, payload: dict) -> None:
	await _emit(user_id, "notification:new", payload)


async def emit_notification_count(user_id: str, unread_count: int) -> None:
	await _emit(user_id, "notification:count", NotificationCountPayload(unread_count=unread_count).model_dump())


async def emit_network_update(user_id: str, payload: dict) -> None:
	await _emit(user_id, "network:update", payload)
