"""OpenTelemetry tracing, installed from the optional `tracing` extra.

Without the extra, or without OTEL_EXPORTER_OTLP_ENDPOINT, every helper here
is a no-op.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI

from app.settings import settings

try:  # pragma: no cover - depends on the installed extras
	from opentelemetry import trace
	from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
	from opentelemetry.instrumentation.asyncpg import AsyncPGInstrumentor
	from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
	from opentelemetry.sdk.resources import Resource
	from opentelemetry.sdk.trace import TracerProvider
	from opentelemetry.sdk.trace.export import BatchSpanProcessor
except ImportError:  # pragma: no cover
	trace = None  # type: ignore[assignment]

LOGGER = logging.getLogger(__name__)
_provider: Optional["TracerProvider"] = None


def _build_provider(endpoint: str) -> "TracerProvider":
	resource = Resource.create(
		{
			"service.name": settings.service_name,
			"service.version": settings.git_commit,
			"deployment.environment": settings.environment,
		}
	)
	provider = TracerProvider(resource=resource)
	provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True)))
	return provider


def init_tracing(app: FastAPI) -> bool:
	"""Export FastAPI and asyncpg spans over OTLP when tracing is switched on."""
	global _provider
	if _provider is not None:
		return True
	if not settings.obs_tracing_enabled:
		return False
	if trace is None:
		LOGGER.warning("tracing_unavailable", extra={"missing": "opentelemetry"})
		return False
	endpoint = settings.otel_exporter_otlp_endpoint
	if not endpoint:
		LOGGER.warning("tracing_unavailable", extra={"missing": "OTEL_EXPORTER_OTLP_ENDPOINT"})
		return False

	_provider = _build_provider(endpoint)
	trace.set_tracer_provider(_provider)
	FastAPIInstrumentor.instrument_app(app)
	AsyncPGInstrumentor().instrument()
	LOGGER.info("tracing_enabled", extra={"endpoint": endpoint})
	return True


def trace_headers() -> Dict[str, str]:
	"""W3C traceparent for the active span, echoed on responses."""
	if _provider is None:
		return {}
	context = trace.get_current_span().get_span_context()
	if not context.is_valid:
		return {}
	return {"traceparent": f"00-{context.trace_id:032x}-{context.span_id:016x}-01"}


def shutdown_tracing() -> None:
	global _provider
	if _provider is None:
		return
	_provider.shutdown()
	_provider = None
