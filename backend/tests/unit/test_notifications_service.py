from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from app.domain.notifications import service, sockets
from app.domain.notifications.exceptions import NotificationInvalid, NotificationNotFound
from app.domain.notifications.models import MAX_LIMIT, clamp_page

RECIPIENT = str(uuid4())
ACTOR = str(uuid4())


class _Acquire:
    def __init__(self, conn) -> None:
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


def _patch_pool(monkeypatch, conn) -> None:
    pool = MagicMock()
    pool.acquire = lambda: _Acquire(conn)

    async def fake_get_pool():
        return pool

    monkeypatch.setattr(service, "get_pool", fake_get_pool)


def _kwargs(**overrides: Any) -> dict[str, Any]:
    values = {
        "recipient_id": RECIPIENT,
        "actor_id": ACTOR,
        "actor_name": "Ann Lee",
        "kind": "like",
        "entity_type": "post",
        "entity_id": str(uuid4()),
        "message": "Ann Lee liked your post",
    }
    values.update(overrides)
    return values


def test_clamp_page():
    assert clamp_page(None, None) == (20, 0)
    assert clamp_page(0, -5) == (1, 0)
    assert clamp_page(1000, 40) == (MAX_LIMIT, 40)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"actor_name": "  "}, "missing_actor_name"),
        ({"message": ""}, "missing_message"),
        ({"kind": "poke"}, "invalid_type"),
        ({"entity_type": "story"}, "invalid_entity_type"),
        ({"recipient_id": None}, "missing_participants"),
    ],
)
async def test_create_notification_validates(overrides, reason):
    with pytest.raises(NotificationInvalid) as exc:
        await service.create_notification(**_kwargs(**overrides))
    assert exc.value.reason == reason


@pytest.mark.asyncio
async def test_self_notification_is_skipped(monkeypatch):
    async def no_pool():
        raise AssertionError("pool should not be used")

    monkeypatch.setattr(service, "get_pool", no_pool)
    assert await service.create_notification(**_kwargs(actor_id=RECIPIENT)) is None


@pytest.mark.asyncio
async def test_create_notification_persists_and_fans_out(monkeypatch):
    now = datetime.now(timezone.utc)

    async def insert_row(query, *params):
        return {
            "id": params[0],
            "recipient_user_id": params[1],
            "actor_user_id": params[2],
            "actor_full_name": params[3],
            "type": params[4],
            "entity_type": params[5],
            "entity_id": params[6],
            "message": params[7],
            "is_read": False,
            "created_at": now,
        }

    conn = MagicMock()
    conn.fetchrow = AsyncMock(side_effect=insert_row)
    conn.fetchval = AsyncMock(return_value=3)
    _patch_pool(monkeypatch, conn)
    emitted: list[tuple[str, Any]] = []
    pushed: list[str] = []

    async def fake_new(user_id, payload):
        emitted.append(("new", payload))

    async def fake_count(user_id, unread):
        emitted.append(("count", unread))

    async def fake_push(user_id, *, title, body, data):
        pushed.append(title)

    monkeypatch.setattr(service.sockets, "emit_notification_new", fake_new)
    monkeypatch.setattr(service.sockets, "emit_notification_count", fake_count)
    monkeypatch.setattr(service.push, "send_push_to_user", fake_push)

    notification = await service.create_notification(**_kwargs())

    assert notification is not None
    assert notification.actor_full_name == "Ann Lee"
    assert emitted[0][0] == "new"
    assert emitted[0][1]["message"] == "Ann Lee liked your post"
    assert emitted[1] == ("count", 3)
    assert pushed == ["New like"]


@pytest.mark.asyncio
async def test_notify_swallows_failures(monkeypatch):
    async def broken_pool():
        raise RuntimeError("db down")

    monkeypatch.setattr(service, "get_pool", broken_pool)
    assert await service.notify(**_kwargs()) is None


@pytest.mark.asyncio
async def test_mark_read_unknown_notification(monkeypatch):
    conn = MagicMock()
    conn.fetchrow = AsyncMock(return_value=None)
    _patch_pool(monkeypatch, conn)
    with pytest.raises(NotificationNotFound):
        await service.mark_read(uuid4(), RECIPIENT)


@pytest.mark.asyncio
async def test_mark_all_read_resets_badge(monkeypatch):
    conn = MagicMock()
    conn.execute = AsyncMock(return_value="UPDATE 4")
    _patch_pool(monkeypatch, conn)
    counts: list[int] = []

    async def fake_count(user_id, unread):
        counts.append(unread)

    monkeypatch.setattr(service.sockets, "emit_notification_count", fake_count)
    assert await service.mark_all_read(RECIPIENT) == 4
    assert counts == [0]


def test_socket_dev_header_must_be_a_uuid():
    user_id = uuid4()
    scope = {"headers": [(b"x-user-id", str(user_id).upper().encode())]}

    assert sockets._authenticate({}, scope).id == str(user_id)
    with pytest.raises(ConnectionRefusedError):
        sockets._authenticate({"userId": "kid123"}, {"headers": []})
