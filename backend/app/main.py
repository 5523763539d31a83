"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import auth, clips, network, notifications, ops, posts, uploads
from app.api.errors import install_error_handlers
from app.domain.notifications.sockets import NotificationsNamespace, set_namespace
from app.infra import postgres
from app.obs import init as obs_init
from app.obs import tracing
from app.settings import DEV_SECRET_KEY, settings

DEV_ORIGINS = [
	"http://localhost:3000",
	"https://localhost:3000",
	"http://127.0.0.1:3000",
	"http://localhost:5173",
	"http://127.0.0.1:5173",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
	if settings.is_prod() and settings.secret_key == DEV_SECRET_KEY:
		raise RuntimeError("SECRET_KEY must be set in production")
	await postgres.init_pool()
	try:
		yield
	finally:
		await postgres.close_pool()
		tracing.shutdown_tracing()


def _allowed_origins() -> list[str]:
	origins = list(settings.cors_allow_origins or [])
	if not origins:
		origins = [settings.frontend_url]
	# Starlette disallows wildcard '*' with allow_credentials=True
	if "*" in origins:
		origins = DEV_ORIGINS if settings.is_dev() else [settings.frontend_url]
	return origins


app = FastAPI(title="athlinked API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = _allowed_origins()

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
obs_init(app)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins=allow_origins)
notifications_namespace = NotificationsNamespace()
sio.register_namespace(notifications_namespace)
set_namespace(notifications_namespace)
socket_app = socketio.ASGIApp(sio, other_asgi_app=app)

app.include_router(auth.router, tags=["identity"])
app.include_router(network.router, tags=["network"])
app.include_router(posts.router, tags=["posts"])
app.include_router(clips.router, tags=["clips"])
app.include_router(notifications.router, tags=["notifications"])
app.include_router(uploads.router, tags=["uploads"])
app.include_router(ops.router, tags=["ops"])
