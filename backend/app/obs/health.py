"""Liveness and readiness probes for the athlinked API."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import asyncpg

from app.infra import postgres
from app.infra.redis import redis_client
from app.obs import metrics
from app.settings import settings

LOGGER = logging.getLogger(__name__)

REDIS_TIMEOUT = 0.2
POSTGRES_TIMEOUT = 0.3

Check = Dict[str, Any]


async def _probe(name: str, call: Callable[[], Awaitable[Any]], timeout: float, mark: Callable[..., None]) -> Check:
	"""Run one dependency round trip and report its latency."""
	start = perf_counter()
	try:
		await asyncio.wait_for(call(), timeout=timeout)
	except Exception as exc:
		mark(False)
		LOGGER.warning("readiness_probe_failed", extra={"dependency": name}, exc_info=True)
		return {"ok": False, "error": str(exc)}
	latency = perf_counter() - start
	mark(True, latency_seconds=latency)
	return {"ok": True, "latency_ms": round(latency * 1000, 2)}


async def _check_postgres() -> Tuple[Check, Optional[asyncpg.Pool]]:
	try:
		pool = await postgres.get_pool()
	except Exception as exc:
		metrics.mark_postgres(False)
		LOGGER.warning("readiness_pool_unavailable", exc_info=True)
		return {"ok": False, "error": str(exc)}, None

	async def select_one() -> None:
		async with pool.acquire() as conn:
			await conn.execute("SELECT 1")

	return await _probe("postgres", select_one, POSTGRES_TIMEOUT, metrics.mark_postgres), pool


async def _check_schema(pool: Optional[asyncpg.Pool]) -> Check:
	"""The newest applied migration must be at least HEALTH_MIN_MIGRATION."""
	if pool is None:
		return {"ok": False, "error": "pool_unavailable"}
	required = settings.health_min_migration
	try:
		async with pool.acquire() as conn:
			version = await conn.fetchval("SELECT MAX(version) FROM schema_migrations")
	except asyncpg.UndefinedTableError:
		return {"ok": False, "error": "schema_migrations_missing", "required": required}
	except Exception as exc:
		return {"ok": False, "error": str(exc), "required": required}
	if version is None:
		return {"ok": False, "error": "no_migrations", "required": required}
	return {"ok": str(version) >= required, "version": str(version), "required": required}


async def liveness() -> Dict[str, Any]:
	return {"status": "ok", "service": settings.service_name, "commit": settings.git_commit}


async def readiness() -> Tuple[int, Dict[str, Any]]:
	"""Probe redis, postgres and the migration level; any failure answers 503."""
	checks: Dict[str, Check] = {
		"redis": await _probe("redis", redis_client.ping, REDIS_TIMEOUT, metrics.mark_redis),
	}
	checks["postgres"], pool = await _check_postgres()
	checks["migrations"] = await _check_schema(pool)
	ok = all(check.get("ok") for check in checks.values())
	return (200 if ok else 503), {"status": "ok" if ok else "degraded", "checks": checks}
