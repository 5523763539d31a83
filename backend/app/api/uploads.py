"""Presigned upload endpoint for post, clip and profile media."""

from __future__ import annotations

import logging
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from app.infra import storage
from app.infra.auth import AuthenticatedUser, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])

_KEY_PREFIXES = {"post": "posts", "clip": "clips", "profile": "profiles"}


class PresignRequest(BaseModel):
	kind: Literal["post", "clip", "profile"]
	filename: str = Field(..., min_length=1, max_length=255)
	mime: str = Field(..., min_length=3, max_length=128)


class PresignResponse(BaseModel):
	key: str
	upload_url: str
	expires_in: int


def is_allowed_mime(mime: str) -> bool:
	mime = mime.lower()
	return mime.startswith(("image/", "video/")) or mime == "application/pdf"


@router.post("/presign", response_model=PresignResponse)
async def presign_upload(
	payload: PresignRequest,
	auth_user: AuthenticatedUser = Depends(get_current_user),
) -> PresignResponse:
	if not is_allowed_mime(payload.mime):
		raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="mime_invalid")
	key = storage.generate_key(_KEY_PREFIXES[payload.kind], payload.filename, payload.mime.lower())
	url = storage.presign_upload(key, payload.mime.lower())
	logger.info("upload_presigned", extra={"kind": payload.kind, "user_id": auth_user.id})
	return PresignResponse(key=key, upload_url=url, expires_in=storage.UPLOAD_PRESIGN_SECONDS)
