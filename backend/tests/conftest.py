import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from app.domain.notifications import sockets
from app.infra import postgres, storage
from app.main import app
from app.settings import settings


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
    from app.infra.redis import redis_client, set_redis_client

    original = redis_client.client
    client = FakeRedis(decode_responses=True)
    set_redis_client(client)
    try:
        yield client
    finally:
        set_redis_client(original)
        await client.flushall()


@pytest.fixture(autouse=True)
def patch_postgres(monkeypatch):
    async def _noop():
        return None

    monkeypatch.setattr(postgres, "init_pool", _noop)
    monkeypatch.setattr(postgres, "close_pool", _noop)


@pytest.fixture(autouse=True)
def memory_storage():
    client = storage.InMemoryStorageClient()
    storage.set_storage(client)
    try:
        yield client
    finally:
        storage.set_storage(None)


@pytest.fixture(autouse=True)
def force_test_settings():
    """Ensure a consistent test environment.

    API tests authenticate via X-User-Id headers, which are only accepted in dev mode.
    """
    original_env = settings.environment
    original_fcm = settings.fcm_enabled
    settings.environment = "dev"
    settings.fcm_enabled = False
    try:
        yield
    finally:
        settings.environment = original_env
        settings.fcm_enabled = original_fcm


@pytest.fixture(autouse=True)
def detach_socket_namespace():
    sockets.set_namespace(None)
    yield
    sockets.set_namespace(None)


@pytest_asyncio.fixture
async def api_client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
