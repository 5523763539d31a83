"""S3 media storage: object keys in the database, presigned URLs on read."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import os
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol
from urllib.parse import unquote, urlparse

import boto3
import ulid
from botocore.config import Config

from app.obs import metrics as obs_metrics
from app.settings import settings

logger = logging.getLogger(__name__)

MAX_PRESIGN_SECONDS = 7 * 24 * 60 * 60
UPLOAD_PRESIGN_SECONDS = 900


class StorageClient(Protocol):
	"""Operations the API needs from object storage."""

	def presign_get(self, key: str, expires_in: int) -> str:
		...

	def presign_put(self, key: str, content_type: str, expires_in: int) -> str:
		...

	def put_bytes(self, key: str, body: bytes, content_type: str) -> None:
		...

	def delete(self, key: str) -> None:
		...


@dataclass
class InMemoryStorageClient:
	"""Test double for storage interactions."""

	base_url: str = "https://storage.test"
	objects: dict[str, bytes] = field(default_factory=dict)
	deleted: list[str] = field(default_factory=list)

	def presign_get(self, key: str, expires_in: int) -> str:
		return f"{self.base_url}/{key}?op=get&expires={expires_in}"

	def presign_put(self, key: str, content_type: str, expires_in: int) -> str:
		return f"{self.base_url}/{key}?op=put&expires={expires_in}"

	def put_bytes(self, key: str, body: bytes, content_type: str) -> None:
		self.objects[key] = body

	def delete(self, key: str) -> None:
		self.objects.pop(key, None)
		self.deleted.append(key)


@dataclass
class S3StorageClient:
	bucket: str
	region: str
	access_key_id: Optional[str] = None
	secret_access_key: Optional[str] = None
	endpoint_url: Optional[str] = None

	def __post_init__(self) -> None:
		self._client = boto3.client(
			"s3",
			region_name=self.region,
			endpoint_url=self.endpoint_url,
			aws_access_key_id=self.access_key_id,
			aws_secret_access_key=self.secret_access_key,
			config=Config(signature_version="s3v4"),
		)

	def presign_get(self, key: str, expires_in: int) -> str:
		return self._client.generate_presigned_url(
			ClientMethod="get_object",
			Params={"Bucket": self.bucket, "Key": key},
			ExpiresIn=expires_in,
		)

	def presign_put(self, key: str, content_type: str, expires_in: int) -> str:
		return self._client.generate_presigned_url(
			ClientMethod="put_object",
			Params={"Bucket": self.bucket, "Key": key, "ContentType": content_type},
			ExpiresIn=expires_in,
		)

	def put_bytes(self, key: str, body: bytes, content_type: str) -> None:
		self._client.put_object(Bucket=self.bucket, Key=key, Body=body, ContentType=content_type)

	def delete(self, key: str) -> None:
		self._client.delete_object(Bucket=self.bucket, Key=key)


_storage: Optional[StorageClient] = None


def get_storage() -> StorageClient:
	global _storage
	if _storage is None:
		_storage = S3StorageClient(
			bucket=settings.aws_s3_bucket_name,
			region=settings.aws_region,
			access_key_id=settings.aws_access_key_id,
			secret_access_key=settings.aws_secret_access_key,
			endpoint_url=settings.s3_endpoint_url,
		)
	return _storage


def set_storage(client: Optional[StorageClient]) -> None:
	global _storage
	_storage = client


def media_category(mime: str | None) -> str:
	mime = (mime or "").lower()
	if mime.startswith("image/"):
		return "images"
	if mime.startswith("video/"):
		return "videos"
	if mime == "application/pdf":
		return "pdfs"
	return "files"


def generate_key(prefix: str, original_name: str | None, mime: str | None) -> str:
	"""Build `{prefix}/{category}/{prefix}-{ts}-{rand}{ext}` for a new upload."""
	_, ext = os.path.splitext(original_name or "")
	if not ext and mime:
		ext = mimetypes.guess_extension(mime) or ""
	rand = str(ulid.new()).lower()[-10:]
	ts = int(time.time() * 1000)
	return f"{prefix}/{media_category(mime)}/{prefix}-{ts}-{rand}{ext.lower()}"


def _is_s3_host(host: str) -> bool:
	return host.endswith(".amazonaws.com") or host == "amazonaws.com"


def extract_key(value: str | None) -> Optional[str]:
	"""Return the object key behind a stored value.

	Accepts bare keys and full S3 URLs (query stripped). Returns None for empty
	input and for absolute URLs that do not point at S3.
	"""
	if not value:
		return None
	text = value.strip()
	if not text:
		return None
	if text.startswith(("http://", "https://")):
		parsed = urlparse(text)
		if not _is_s3_host(parsed.netloc.lower()):
			return None
		path = unquote(parsed.path).lstrip("/")
		# path-style URLs carry the bucket as the first segment
		bucket_prefix = f"{settings.aws_s3_bucket_name}/"
		if parsed.netloc.lower().startswith("s3.") and path.startswith(bucket_prefix):
			path = path[len(bucket_prefix):]
		return path or None
	return text.lstrip("/") or None


def presign(value: str | None, expires_in: int | None = None) -> Optional[str]:
	"""Presigned GET URL for a stored key or S3 URL.

	Foreign absolute URLs (e.g. Google avatars) are returned unchanged.
	"""
	if not value:
		return None
	key = extract_key(value)
	if key is None:
		return value if value.startswith(("http://", "https://")) else None
	expires = expires_in or settings.s3_presign_expires_seconds
	expires = max(1, min(int(expires), MAX_PRESIGN_SECONDS))
	return get_storage().presign_get(key, expires)


def presign_upload(key: str, content_type: str, expires_in: int = UPLOAD_PRESIGN_SECONDS) -> str:
	expires = max(1, min(int(expires_in), MAX_PRESIGN_SECONDS))
	return get_storage().presign_put(key, content_type, expires)


async def upload(key: str, body: bytes, content_type: str) -> str:
	try:
		await asyncio.to_thread(get_storage().put_bytes, key, body, content_type)
	except Exception:
		obs_metrics.inc_storage("upload", "error")
		raise
	obs_metrics.inc_storage("upload", "ok")
	return key


async def delete(value: str | None) -> bool:
	"""Delete the object behind a key or URL; returns False when there is nothing to delete."""
	key = extract_key(value)
	if key is None:
		return False
	try:
		await asyncio.to_thread(get_storage().delete, key)
	except Exception:
		obs_metrics.inc_storage("delete", "error")
		raise
	obs_metrics.inc_storage("delete", "ok")
	return True
