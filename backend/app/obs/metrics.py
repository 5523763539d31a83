"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram


REQUEST_COUNTER = Counter(
	"athlinked_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"athlinked_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"athlinked_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"athlinked_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

AUTH_LOGINS = Counter(
	"athlinked_auth_logins_total",
	"Login attempts by method and result",
	["method", "result"],
)

AUTH_SIGNUPS = Counter(
	"athlinked_auth_signups_total",
	"Signup flow steps by result",
	["step", "result"],
)

AUTH_REFRESH = Counter(
	"athlinked_auth_refresh_total",
	"Refresh token exchanges by result",
	["result"],
)

NETWORK_EVENTS = Counter(
	"athlinked_network_events_total",
	"Follow graph mutations",
	["action"],
)

CONTENT_CREATED = Counter(
	"athlinked_content_created_total",
	"Posts and clips created",
	["kind", "post_type"],
)

CONTENT_DELETED = Counter(
	"athlinked_content_deleted_total",
	"Posts and clips deleted",
	["kind"],
)

ENGAGEMENT_EVENTS = Counter(
	"athlinked_engagement_events_total",
	"Likes, comments and saves on posts and clips",
	["kind", "action"],
)

MENTIONS_RESOLVED = Counter(
	"athlinked_mentions_resolved_total",
	"Mentioned users resolved for notification fan-out",
	["entity_type"],
)

NOTIFICATIONS_CREATED = Counter(
	"athlinked_notifications_created_total",
	"Notifications persisted",
	["type"],
)

PUSH_DELIVERIES = Counter(
	"athlinked_push_deliveries_total",
	"FCM push deliveries by result",
	["result"],
)

STORAGE_OPS = Counter(
	"athlinked_storage_ops_total",
	"Object storage operations",
	["op", "result"],
)

REDIS_UP = Gauge("athlinked_redis_up", "Redis reachability (1 up / 0 down)")
REDIS_LATENCY = Histogram(
	"athlinked_redis_ping_seconds",
	"Redis ping latency in seconds",
	buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25),
)
POSTGRES_UP = Gauge("athlinked_postgres_up", "Postgres reachability (1 up / 0 down)")
POSTGRES_LATENCY = Histogram(
	"athlinked_postgres_ping_seconds",
	"Postgres SELECT 1 latency in seconds",
	buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.25),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_login(method: str, result: str) -> None:
	AUTH_LOGINS.labels(method=method, result=result).inc()


def inc_signup(step: str, result: str) -> None:
	AUTH_SIGNUPS.labels(step=step, result=result).inc()


def inc_refresh(result: str) -> None:
	AUTH_REFRESH.labels(result=result).inc()


def inc_network(action: str) -> None:
	NETWORK_EVENTS.labels(action=action).inc()


def inc_content_created(kind: str, post_type: str = "clip") -> None:
	CONTENT_CREATED.labels(kind=kind, post_type=post_type).inc()


def inc_content_deleted(kind: str) -> None:
	CONTENT_DELETED.labels(kind=kind).inc()


def inc_engagement(kind: str, action: str) -> None:
	ENGAGEMENT_EVENTS.labels(kind=kind, action=action).inc()


def inc_mentions(entity_type: str, count: int) -> None:
	if count > 0:
		MENTIONS_RESOLVED.labels(entity_type=entity_type).inc(count)


def inc_notification(kind: str) -> None:
	NOTIFICATIONS_CREATED.labels(type=kind).inc()


def inc_push(result: str, count: int = 1) -> None:
	if count > 0:
		PUSH_DELIVERIES.labels(result=result).inc(count)


def inc_storage(op: str, result: str) -> None:
	STORAGE_OPS.labels(op=op, result=result).inc()


def mark_redis(ok: bool, *, latency_seconds: float | None = None) -> None:
	REDIS_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		REDIS_LATENCY.observe(latency_seconds)


def mark_postgres(ok: bool, *, latency_seconds: float | None = None) -> None:
	POSTGRES_UP.set(1 if ok else 0)
	if latency_seconds is not None:
		POSTGRES_LATENCY.observe(latency_seconds)
