from unittest.mock import AsyncMock

import pytest

from app.domain.notifications import push
from app.infra import push as fcm
from app.settings import settings


def test_stringify_data():
    assert fcm.stringify_data({"a": 1, "b": None, "c": "x"}) == {"a": "1", "b": "", "c": "x"}
    assert fcm.stringify_data(None) == {}


@pytest.mark.asyncio
async def test_push_disabled_is_noop(monkeypatch):
    lookup = AsyncMock()
    monkeypatch.setattr(push, "_tokens_for_user", lookup)
    summary = await push.send_push_to_user("u1", title="t", body="b")
    assert summary.success_count == 0
    lookup.assert_not_awaited()


@pytest.mark.asyncio
async def test_push_prunes_invalid_tokens(monkeypatch):
    monkeypatch.setattr(settings, "fcm_enabled", True)
    monkeypatch.setattr(push, "_tokens_for_user", AsyncMock(return_value=["good", "stale"]))
    monkeypatch.setattr(
        push.fcm,
        "send_multicast",
        AsyncMock(return_value=fcm.MulticastResult(success_count=1, failure_count=1, invalid_tokens=["stale"])),
    )
    removed = AsyncMock(return_value=1)
    monkeypatch.setattr(push, "remove_invalid_tokens", removed)

    summary = await push.send_push_to_user("u1", title="New like", body="Ann liked your post", data={"n": 1})

    assert summary.success_count == 1
    assert summary.invalid_tokens == ["stale"]
    assert summary.per_user == {"u1": 1}
    removed.assert_awaited_once_with(["stale"])


@pytest.mark.asyncio
async def test_send_to_users_aggregates(monkeypatch):
    async def fake_send(user_id, *, title, body, data=None):
        return push.PushSummary(success_count=2, per_user={user_id: 2})

    monkeypatch.setattr(push, "send_push_to_user", fake_send)
    summary = await push.send_push_to_users(["a", "b", "a"], title="t", body="b")
    assert summary.success_count == 4
    assert summary.per_user == {"a": 2, "b": 2}
