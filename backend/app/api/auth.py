"""Signup, login, token and password reset endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from app.api.request_id import get_request_id
from app.domain.identity import google, schemas, service
from app.domain.identity.exceptions import IdentityError
from app.infra import rate_limit
from app.infra.auth import AuthenticatedUser, get_current_user
from app.settings import settings

router = APIRouter(tags=["auth"])


def _client_ip(request: Request) -> str:
	client = request.client
	return client.host if client else "unknown"


def _user_agent(request: Request) -> str | None:
	return request.headers.get("User-Agent")


def _raise(detail: str, status_code: int) -> None:
	"""Raise an HTTP error with request id header attached."""
	raise HTTPException(status_code=status_code, detail=detail, headers={"X-Request-Id": get_request_id()})


def _map_error(exc: IdentityError) -> HTTPException:
	return HTTPException(status_code=exc.status_code, detail=exc.reason, headers={"X-Request-Id": get_request_id()})


async def _limit_ip(kind: str, request: Request, limit: int) -> None:
	ip = _client_ip(request)
	if settings.is_dev():
		limit *= 50
	if not await rate_limit.allow(f"{kind}:ip", ip, limit=limit, window_seconds=60):
		_raise("rate_limited_ip", status.HTTP_429_TOO_MANY_REQUESTS)


@router.post("/signup/start", response_model=schemas.SignupStartResponse)
async def signup_start(payload: schemas.SignupStart, request: Request) -> schemas.SignupStartResponse:
	await _limit_ip("signup", request, 10)
	try:
		return await service.start_signup(payload)
	except IdentityError as exc:
		raise _map_error(exc) from None


@router.post("/signup/verify-otp", response_model=schemas.AuthResponse)
async def signup_verify(payload: schemas.SignupVerify, request: Request, response: Response) -> schemas.AuthResponse:
	try:
		result = await service.verify_signup(
			payload.email,
			payload.otp,
			user_agent=_user_agent(request),
			ip=_client_ip(request),
		)
	except IdentityError as exc:
		raise _map_error(exc) from None
	response.headers["X-Request-Id"] = get_request_id(request)
	return result


@router.post("/login", response_model=schemas.AuthResponse)
async def login(payload: schemas.LoginRequest, request: Request, response: Response) -> schemas.AuthResponse:
	await _limit_ip("login", request, 30)
	try:
		result = await service.login(
			payload.identifier,
			payload.password,
			user_agent=_user_agent(request),
			ip=_client_ip(request),
		)
	except IdentityError as exc:
		raise _map_error(exc) from None
	response.headers["X-Request-Id"] = get_request_id(request)
	return result


@router.post("/auth/refresh", response_model=schemas.RefreshResponse)
async def refresh(payload: schemas.RefreshRequest, request: Request) -> schemas.RefreshResponse:
	await _limit_ip("refresh", request, 30)
	try:
		return await service.refresh(payload.refresh_token)
	except IdentityError as exc:
		raise _map_error(exc) from None


@router.post("/auth/logout", response_model=schemas.MessageResponse)
async def logout(payload: schemas.LogoutRequest) -> schemas.MessageResponse:
	await service.logout(payload.refresh_token)
	return schemas.MessageResponse(message="Logged out successfully")


@router.post("/auth/logout-all", response_model=schemas.LogoutAllResponse)
async def logout_all(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.LogoutAllResponse:
	return schemas.LogoutAllResponse(revoked=await service.logout_all(auth_user.id))


@router.post("/auth/google", response_model=schemas.GoogleSignInResponse)
async def google_sign_in(payload: schemas.GoogleSignIn, request: Request) -> schemas.GoogleSignInResponse:
	await _limit_ip("google", request, 30)
	try:
		return await google.google_sign_in(payload, user_agent=_user_agent(request), ip=_client_ip(request))
	except IdentityError as exc:
		raise _map_error(exc) from None


@router.post("/auth/google/complete", response_model=schemas.AuthResponse)
async def google_complete(payload: schemas.GoogleComplete, request: Request) -> schemas.AuthResponse:
	try:
		return await google.complete_google_signup(
			payload.google_id,
			payload.user_type,
			user_agent=_user_agent(request),
			ip=_client_ip(request),
		)
	except IdentityError as exc:
		raise _map_error(exc) from None


@router.post("/forgot-password/request", response_model=schemas.MessageResponse)
async def forgot_password_request(payload: schemas.PasswordResetRequest, request: Request) -> schemas.MessageResponse:
	await _limit_ip("pwreset", request, 10)
	try:
		return await service.request_password_reset(payload.identifier)
	except IdentityError as exc:
		raise _map_error(exc) from None


@router.post("/forgot-password/reset", response_model=schemas.MessageResponse)
async def forgot_password_reset(payload: schemas.PasswordResetConsume) -> schemas.MessageResponse:
	try:
		return await service.reset_password(payload.identifier, payload.otp, payload.new_password)
	except IdentityError as exc:
		raise _map_error(exc) from None


@router.get("/me", response_model=schemas.UserOut)
async def me(auth_user: AuthenticatedUser = Depends(get_current_user)) -> schemas.UserOut:
	try:
		return await service.get_me(auth_user.id)
	except IdentityError as exc:
		raise _map_error(exc) from None
