"""Request middleware: request ids, access logs and HTTP metrics."""

from __future__ import annotations

import time
from typing import Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from app.obs import logging as obs_logging
from app.obs import metrics
from app.obs import tracing
from app.settings import settings

REQUEST_ID_HEADER = "X-Request-Id"
# counted in metrics but kept out of the access log
_UNLOGGED_PATHS = frozenset({"/health/live", "/health/ready", "/metrics"})


def _route_template(request: Request) -> str:
	route = request.scope.get("route")
	path = getattr(route, "path", None)
	return path or request.url.path


def _dev_user(request: Request) -> Optional[str]:
	# X-User-Id only authenticates in dev, so it only labels logs there
	if settings.is_dev():
		return request.headers.get("X-User-Id")
	return None


class ObservabilityMiddleware(BaseHTTPMiddleware):
	"""Tag each request with an id, log it once and record its latency."""

	def __init__(self, app) -> None:
		super().__init__(app)
		self._logger = obs_logging.get_logger("http")

	async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
		request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
		request.state.request_id = request_id
		tokens = obs_logging.bind_context(
			request_id=request_id,
			route=request.url.path,
			user_id=_dev_user(request),
			client_ip=request.client.host if request.client else None,
		)
		start = time.perf_counter()
		status_code = 500
		try:
			response = await call_next(request)
			status_code = response.status_code
		except Exception:
			self._logger.exception("http_request_error", extra={"method": request.method, "path": request.url.path})
			raise
		finally:
			elapsed = time.perf_counter() - start
			route = _route_template(request)
			metrics.observe_request(route, request.method, status_code, elapsed)
			if request.url.path not in _UNLOGGED_PATHS:
				self._logger.info(
					"http_request",
					extra={
						"status": status_code,
						"method": request.method,
						"latency_ms": round(elapsed * 1000, 3),
						"route": route,
					},
				)
			obs_logging.reset_context(tokens)

		response.headers.setdefault(REQUEST_ID_HEADER, request_id)
		for key, value in tracing.trace_headers().items():
			response.headers.setdefault(key, value)
		return response


def install(app) -> None:
	app.add_middleware(ObservabilityMiddleware)
