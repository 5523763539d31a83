"""Authentication helpers for FastAPI endpoints.

- Bearer access JWTs (HS256) are verified with settings.secret_key.
- Dev headers (X-User-Id) are only respected in development.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.settings import settings
from app.infra import jwt as jwt_helper


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	email: Optional[str] = None
	username: Optional[str] = None
	user_type: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def _optional_str(value: object) -> Optional[str]:
	if value is None:
		return None
	text = str(value).strip()
	return text or None


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser."""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from None

	sub = str(payload.get("sub") or "").strip()
	if not sub:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return AuthenticatedUser(
		id=sub,
		email=_optional_str(payload.get("email")),
		username=_optional_str(payload.get("username")),
		user_type=_optional_str(payload.get("user_type")),
	)


def _resolve_user(
	credentials: Optional[HTTPAuthorizationCredentials],
	x_user_id: Optional[str],
	x_user_type: Optional[str],
) -> Optional[AuthenticatedUser]:
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	if settings.is_dev() and x_user_id:
		try:
			user_id = str(UUID(x_user_id.strip()))
		except ValueError:
			raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_user_id") from None
		return AuthenticatedUser(id=user_id, user_type=x_user_type)
	return None


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_type: Optional[str] = Header(default=None, alias="X-User-Type"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow simple headers. In all other environments, headers are
	ignored and a valid Bearer JWT is required.
	"""
	user = _resolve_user(credentials, x_user_id, x_user_type)
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return user


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_type: Optional[str] = Header(default=None, alias="X-User-Type"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	"""Like get_current_user, but anonymous callers resolve to None.

	A malformed bearer token is still rejected.
	"""
	return _resolve_user(credentials, x_user_id, x_user_type)
