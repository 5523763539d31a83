from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest

from app.domain.common.users import UserBrief
from app.domain.network import policy, service
from app.domain.network.exceptions import ConnectionNotFound, ConnectionRequestNotFound, NetworkSelfAction
from app.domain.network.models import MSG_ALREADY_CONNECTED, MSG_REQUEST_PENDING, MSG_REQUEST_SENT, normalize_pair

LOW = "00000000-0000-0000-0000-000000000001"
HIGH = "ffffffff-0000-0000-0000-000000000002"


class _Acquire:
    def __init__(self, conn) -> None:
        self._conn = conn

    async def __aenter__(self):
        return self._conn

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class _Transaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


def _conn() -> MagicMock:
    conn = MagicMock()
    conn.transaction = lambda: _Transaction()
    return conn


def _patch_pool(monkeypatch, conn) -> None:
    pool = MagicMock()
    pool.acquire = lambda: _Acquire(conn)

    async def fake_get_pool():
        return pool

    monkeypatch.setattr(service, "get_pool", fake_get_pool)


def _brief(user_id: str, name: str) -> UserBrief:
    return UserBrief(id=user_id, username=name.lower(), full_name=name, profile_url=None, user_type="athlete")


def test_normalize_pair_orders_ids():
    assert normalize_pair(HIGH, LOW) == (LOW, HIGH)
    assert normalize_pair(LOW, HIGH) == (LOW, HIGH)


def test_guard_not_self():
    with pytest.raises(NetworkSelfAction) as exc:
        policy.guard_not_self(LOW, LOW, "cannot_follow_self")
    assert exc.value.reason == "cannot_follow_self"


@pytest.mark.asyncio
async def test_insert_follow_edge_bumps_counters():
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=uuid4())
    conn.execute = AsyncMock(return_value="UPDATE 1")
    created = await policy.insert_follow_edge(conn, _brief(LOW, "Ann"), _brief(HIGH, "Bo"))
    assert created is True
    statements = [call.args[0] for call in conn.execute.await_args_list]
    assert statements == [
        "UPDATE users SET following = following + 1 WHERE id = $1",
        "UPDATE users SET followers = followers + 1 WHERE id = $1",
    ]


@pytest.mark.asyncio
async def test_existing_follow_edge_leaves_counters():
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=None)
    conn.execute = AsyncMock()
    assert await policy.insert_follow_edge(conn, _brief(LOW, "Ann"), _brief(HIGH, "Bo")) is False
    conn.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_insert_connection_normalizes_order():
    conn = MagicMock()
    conn.fetchval = AsyncMock(return_value=uuid4())
    await policy.insert_connection(conn, _brief(HIGH, "Bo"), _brief(LOW, "Ann"))
    params = conn.fetchval.await_args.args[2:]
    assert params == (LOW, HIGH, "Ann", "Bo")


@pytest.mark.asyncio
async def test_follow_self_rejected():
    with pytest.raises(NetworkSelfAction):
        await service.follow_user(LOW, LOW)


@pytest.mark.asyncio
async def test_follow_user_records_event_and_notifies(monkeypatch, fake_redis):
    conn = _conn()
    users = {LOW: {"id": LOW, "full_name": "Ann Lee"}, HIGH: {"id": HIGH, "full_name": "Bo Park"}}
    conn.fetchrow = AsyncMock(side_effect=lambda query, user_id: users[user_id])
    conn.fetchval = AsyncMock(return_value=uuid4())
    conn.execute = AsyncMock(return_value="UPDATE 1")
    _patch_pool(monkeypatch, conn)
    sent: list[dict[str, Any]] = []

    async def fake_notify(**kwargs):
        sent.append(kwargs)

    monkeypatch.setattr(service.notifications, "notify", fake_notify)

    assert await service.follow_user(LOW, HIGH) is True

    assert sent[0]["recipient_id"] == HIGH
    assert sent[0]["message"] == "Ann Lee started following you"
    events = await fake_redis.xrange("x:network.events")
    assert events[0][1]["event"] == "follow"


@pytest.mark.asyncio
async def test_unfollow_connected_pair_severs_connection(monkeypatch):
    conn = _conn()
    conn.execute = AsyncMock(return_value="DELETE 1")
    conn.fetchval = AsyncMock(return_value=True)
    _patch_pool(monkeypatch, conn)

    assert await service.unfollow_user(LOW, HIGH) is True

    statements = [call.args[0] for call in conn.execute.await_args_list]
    assert sum("DELETE FROM user_follows" in query for query in statements) == 2
    assert any("DELETE FROM user_connections" in query for query in statements)


@pytest.mark.asyncio
async def test_disconnect_without_connection(monkeypatch):
    conn = _conn()
    conn.execute = AsyncMock(return_value="DELETE 0")
    _patch_pool(monkeypatch, conn)

    with pytest.raises(ConnectionNotFound):
        await service.disconnect(LOW, HIGH)


@pytest.mark.asyncio
async def test_create_connection_is_idempotent(monkeypatch):
    conn = _conn()
    users = {LOW: {"id": LOW, "full_name": "Ann Lee"}, HIGH: {"id": HIGH, "full_name": "Bo Park"}}
    conn.fetchrow = AsyncMock(side_effect=lambda query, user_id: users[user_id])
    conn.fetchval = AsyncMock(side_effect=[uuid4(), None])
    _patch_pool(monkeypatch, conn)

    assert await service.create_connection(HIGH, LOW) is True
    assert await service.create_connection(LOW, HIGH) is False
    for call in conn.fetchval.await_args_list:
        assert call.args[2:4] == (LOW, HIGH)


@pytest.mark.asyncio
async def test_remove_connection_reports_deletion(monkeypatch):
    conn = _conn()
    conn.execute = AsyncMock(side_effect=["DELETE 1", "DELETE 0"])
    _patch_pool(monkeypatch, conn)

    assert await service.remove_connection(HIGH, LOW) is True
    assert await service.remove_connection(HIGH, LOW) is False
    assert conn.execute.await_args.args[1:] == (LOW, HIGH)


USERS = {LOW: {"id": LOW, "full_name": "Ann Lee"}, HIGH: {"id": HIGH, "full_name": "Bo Park"}}


class _LoggedTransaction:
    def __init__(self, log: list) -> None:
        self._log = log

    async def __aenter__(self):
        self._log.append("begin")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self._log.append("end")
        return False


def _silence_notifications(monkeypatch) -> list:
    sent: list[dict[str, Any]] = []

    async def fake_notify(**kwargs):
        sent.append(kwargs)

    monkeypatch.setattr(service.notifications, "notify", fake_notify)
    return sent


def _execute_deleting(*edges):
    """Follow deletes hit only for the listed (follower, following) edges."""

    def execute(query, *args):
        if query.startswith("DELETE FROM user_follows"):
            return "DELETE 1" if args in edges else "DELETE 0"
        if query.startswith("DELETE"):
            return "DELETE 1"
        return "UPDATE 1"

    return execute


@pytest.mark.asyncio
async def test_unfollow_connection_without_direct_edge(monkeypatch):
    conn = _conn()
    conn.execute = AsyncMock(side_effect=_execute_deleting((HIGH, LOW)))
    conn.fetchval = AsyncMock(side_effect=[False, True, True])
    _patch_pool(monkeypatch, conn)

    assert await service.is_following(LOW, HIGH) is True
    assert await service.unfollow_user(LOW, HIGH) is True

    calls = [call.args for call in conn.execute.await_args_list]
    assert ("DELETE FROM user_connections WHERE user_id_1 = $1 AND user_id_2 = $2", LOW, HIGH) in calls
    decrements = [args for args in calls if "GREATEST" in args[0]]
    assert decrements == [
        ("UPDATE users SET following = GREATEST(following - 1, 0) WHERE id = $1", HIGH),
        ("UPDATE users SET followers = GREATEST(followers - 1, 0) WHERE id = $1", LOW),
    ]


@pytest.mark.asyncio
async def test_unfollow_stranger_is_noop(monkeypatch):
    conn = _conn()
    conn.execute = AsyncMock(side_effect=_execute_deleting())
    conn.fetchval = AsyncMock(return_value=False)
    _patch_pool(monkeypatch, conn)

    assert await service.unfollow_user(LOW, HIGH) is False
    statements = [call.args[0] for call in conn.execute.await_args_list]
    assert not any("user_connections" in query for query in statements)
    assert not any(query.startswith("UPDATE") for query in statements)


@pytest.mark.asyncio
async def test_is_following_direct_edge_skips_connection_lookup(monkeypatch):
    conn = _conn()
    conn.fetchval = AsyncMock(return_value=True)
    _patch_pool(monkeypatch, conn)

    assert await service.is_following(LOW, HIGH) is True
    assert conn.fetchval.await_count == 1


@pytest.mark.asyncio
async def test_is_following_false_without_edge_or_connection(monkeypatch):
    conn = _conn()
    conn.fetchval = AsyncMock(return_value=False)
    _patch_pool(monkeypatch, conn)

    assert await service.is_following(LOW, HIGH) is False


@pytest.mark.asyncio
async def test_get_following_unions_follows_and_connections(monkeypatch):
    conn = _conn()
    conn.fetch = AsyncMock(return_value=[{"id": HIGH, "username": "bo", "full_name": "Bo Park", "profile_url": None}])
    _patch_pool(monkeypatch, conn)

    following = await service.get_following(LOW)

    assert [str(user.id) for user in following] == [HIGH]
    query, user_id = conn.fetch.await_args.args
    assert "FROM user_follows" in query and "FROM user_connections" in query
    assert user_id == LOW


@pytest.mark.asyncio
async def test_send_request_when_already_connected(monkeypatch):
    conn = _conn()
    conn.fetchrow = AsyncMock(side_effect=lambda query, user_id: USERS[user_id])
    conn.fetchval = AsyncMock(return_value=True)
    _patch_pool(monkeypatch, conn)
    sent = _silence_notifications(monkeypatch)

    result = await service.send_connection_request(LOW, HIGH)

    assert result.success is False
    assert result.message == MSG_ALREADY_CONNECTED
    assert sent == []


@pytest.mark.asyncio
async def test_send_request_when_one_is_pending(monkeypatch):
    conn = _conn()

    def fetchrow(query, *args):
        if "FROM users" in query:
            return USERS[args[0]]
        return {"id": uuid4(), "requester_id": HIGH, "receiver_id": LOW, "status": "pending"}

    conn.fetchrow = AsyncMock(side_effect=fetchrow)
    conn.fetchval = AsyncMock(return_value=False)
    _patch_pool(monkeypatch, conn)
    _silence_notifications(monkeypatch)

    result = await service.send_connection_request(LOW, HIGH)

    assert result.success is False
    assert result.message == MSG_REQUEST_PENDING
    assert conn.fetchval.await_count == 1


@pytest.mark.asyncio
async def test_send_request_upserts_pending_and_notifies(monkeypatch, fake_redis):
    conn = _conn()
    request_id = uuid4()

    def fetchrow(query, *args):
        return USERS[args[0]] if "FROM users" in query else None

    conn.fetchrow = AsyncMock(side_effect=fetchrow)
    conn.fetchval = AsyncMock(side_effect=[False, request_id])
    _patch_pool(monkeypatch, conn)
    sent = _silence_notifications(monkeypatch)

    result = await service.send_connection_request(LOW, HIGH)

    assert result.success is True
    assert result.message == MSG_REQUEST_SENT
    assert result.request_id == request_id
    upsert = conn.fetchval.await_args
    assert "ON CONFLICT (requester_id, receiver_id)" in upsert.args[0]
    assert "DO UPDATE SET status = 'pending'" in upsert.args[0]
    assert upsert.args[2:] == (LOW, HIGH)
    assert sent[0]["recipient_id"] == HIGH
    assert sent[0]["message"] == "Ann Lee sent you a connection request"
    events = await fake_redis.xrange("x:network.events")
    assert events[-1][1]["event"] == "connection_request"


@pytest.mark.asyncio
async def test_accept_requires_pending_request_for_receiver(monkeypatch):
    conn = _conn()
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock()
    _patch_pool(monkeypatch, conn)
    request_id = uuid4()

    with pytest.raises(ConnectionRequestNotFound):
        await service.accept_connection_request(request_id, LOW)

    query, *params = conn.fetchrow.await_args.args
    assert "receiver_id = $2 AND status = 'pending'" in query
    assert params == [request_id, LOW]
    conn.fetchval.assert_not_awaited()


@pytest.mark.asyncio
async def test_accept_creates_missing_edges_and_connection_atomically(monkeypatch):
    log: list[str] = []
    conn = MagicMock()
    conn.transaction = lambda: _LoggedTransaction(log)
    request_id = uuid4()
    request = {
        "id": request_id,
        "requester_id": UUID(HIGH),
        "receiver_id": UUID(LOW),
        "status": "pending",
        "created_at": datetime.now(timezone.utc),
    }

    def fetchrow(query, *args):
        if "FROM users" in query:
            return USERS[args[0]]
        if query.lstrip().startswith("UPDATE connection_requests"):
            return {**request, "status": "accepted"}
        return request

    def fetchval(query, *args):
        if "INSERT INTO user_follows" in query:
            log.append(f"follow {args[1]}")
            # the requester already followed the receiver
            return None if args[1] == HIGH else uuid4()
        log.append(f"connection {args[1]} {args[2]}")
        return uuid4()

    conn.fetchrow = AsyncMock(side_effect=fetchrow)
    conn.fetchval = AsyncMock(side_effect=fetchval)
    conn.execute = AsyncMock(return_value="UPDATE 1")
    _patch_pool(monkeypatch, conn)
    sent = _silence_notifications(monkeypatch)

    accepted = await service.accept_connection_request(request_id, LOW)

    assert accepted.status == "accepted"
    assert log == ["begin", f"follow {HIGH}", f"follow {LOW}", f"connection {LOW} {HIGH}", "end"]
    bumps = [call.args for call in conn.execute.await_args_list]
    assert bumps == [
        ("UPDATE users SET following = following + 1 WHERE id = $1", LOW),
        ("UPDATE users SET followers = followers + 1 WHERE id = $1", HIGH),
    ]
    assert sent[0]["recipient_id"] == HIGH
    assert sent[0]["message"] == "Ann Lee accepted your connection request"


@pytest.mark.asyncio
async def test_status_reports_connection_first(monkeypatch):
    conn = _conn()
    conn.fetchval = AsyncMock(return_value=True)
    conn.fetchrow = AsyncMock()
    _patch_pool(monkeypatch, conn)

    status = await service.check_connection_request_status(LOW, HIGH)

    assert status.exists is True
    assert status.status == "connected"
    assert status.direction is None
    conn.fetchrow.assert_not_awaited()


@pytest.mark.asyncio
async def test_status_direction_depends_on_requester(monkeypatch):
    conn = _conn()
    request_id = uuid4()
    conn.fetchval = AsyncMock(return_value=False)
    conn.fetchrow = AsyncMock(return_value={"id": request_id, "requester_id": UUID(LOW), "status": "pending"})
    _patch_pool(monkeypatch, conn)

    sent = await service.check_connection_request_status(LOW, HIGH)
    received = await service.check_connection_request_status(HIGH, LOW)

    assert (sent.status, sent.direction, sent.request_id) == ("pending", "sent", request_id)
    assert (received.status, received.direction) == ("pending", "received")


@pytest.mark.asyncio
async def test_status_without_history(monkeypatch):
    conn = _conn()
    conn.fetchval = AsyncMock(return_value=False)
    conn.fetchrow = AsyncMock(return_value=None)
    _patch_pool(monkeypatch, conn)

    status = await service.check_connection_request_status(LOW, HIGH)

    assert status.exists is False
    assert status.status is None
