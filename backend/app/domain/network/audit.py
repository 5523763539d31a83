"""Audit helpers for follow and connection changes."""

from __future__ import annotations

from typing import Dict

from app.infra.redis import redis_client
from app.obs import metrics as obs_metrics


async def log_network_event(event: str, fields: Dict[str, str]) -> None:
	obs_metrics.inc_network(event)
	payload = {"event": event, **fields}
	await redis_client.xadd("x:network.events", payload, maxlen=100_000, approximate=True)
