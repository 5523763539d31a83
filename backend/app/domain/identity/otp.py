"""One-time passcodes held in Redis for signup and password reset."""

from __future__ import annotations

import hashlib
import hmac
import json
import secrets
from typing import Any, Dict, Optional

from app.domain.identity.exceptions import OtpInvalid
from app.domain.identity.models import OTP_DIGITS
from app.infra.redis import redis_client
from app.settings import settings

SIGNUP = "signup"
PASSWORD_RESET = "reset"


def _key(purpose: str, subject: str) -> str:
	return f"otp:{purpose}:{subject}"


def _digest(code: str) -> str:
	return hashlib.sha256((settings.refresh_pepper + code).encode()).hexdigest()


def generate_code() -> str:
	return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


async def issue(purpose: str, subject: str, payload: Optional[Dict[str, Any]] = None) -> str:
	"""Store a fresh code (replacing any previous one) and return it."""
	code = generate_code()
	key = _key(purpose, subject)
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.delete(key)
		pipe.hset(key, mapping={"code": _digest(code), "payload": json.dumps(payload or {}), "attempts": 0})
		pipe.expire(key, settings.otp_ttl_seconds)
		await pipe.execute()
	return code


async def verify(purpose: str, subject: str, code: str) -> Dict[str, Any]:
	"""Consume a code and return the payload stored with it.

	Each wrong guess counts against OTP_MAX_ATTEMPTS; the code is dropped once
	the budget is spent.
	"""
	key = _key(purpose, subject)
	async with redis_client.pipeline(transaction=True) as pipe:
		pipe.hgetall(key)
		pipe.hincrby(key, "attempts", 1)
		stored, attempts = await pipe.execute()
	if not stored:
		# the increment recreated an expired key without a TTL
		await redis_client.delete(key)
		raise OtpInvalid("OTP expired or not found")
	attempts = int(attempts)
	if attempts > settings.otp_max_attempts:
		await redis_client.delete(key)
		raise OtpInvalid("Too many attempts. Please request a new OTP")
	if not hmac.compare_digest(str(stored.get("code", "")), _digest((code or "").strip())):
		raise OtpInvalid("Invalid OTP")
	await redis_client.delete(key)
	return json.loads(stored.get("payload") or "{}")
