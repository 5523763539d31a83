from datetime import datetime, timezone
from uuid import uuid4

import pytest

from app.domain.notifications import push, service
from app.domain.notifications.exceptions import FcmTokenNotFound, NotificationNotFound
from app.domain.notifications.schemas import FcmTokenOut, NotificationList

USER_ID = str(uuid4())
HEADERS = {"X-User-Id": USER_ID}


@pytest.mark.asyncio
async def test_list_requires_authentication(api_client):
    response = await api_client.get("/notifications")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_forwards_raw_paging(api_client, monkeypatch):
    seen = {}

    async def fake_list(user_id, *, limit, offset):
        seen.update(user=user_id, limit=limit, offset=offset)
        return NotificationList(notifications=[], limit=100, offset=0, unread_count=0)

    monkeypatch.setattr(service, "list_notifications", fake_list)

    response = await api_client.get("/notifications", params={"limit": 1000, "offset": -3}, headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["limit"] == 100
    assert seen == {"user": USER_ID, "limit": 1000, "offset": -3}


@pytest.mark.asyncio
async def test_unread_count_and_read_all(api_client, monkeypatch):
    async def fake_unread(user_id):
        return 7

    async def fake_mark_all(user_id):
        return 7

    monkeypatch.setattr(service, "unread_count", fake_unread)
    monkeypatch.setattr(service, "mark_all_read", fake_mark_all)

    count = await api_client.get("/notifications/unread-count", headers=HEADERS)
    marked = await api_client.put("/notifications/read-all", headers=HEADERS)

    assert count.json() == {"count": 7}
    assert marked.json() == {"updated": 7}


@pytest.mark.asyncio
async def test_mark_read_not_found(api_client, monkeypatch):
    async def fake_mark(notification_id, user_id):
        raise NotificationNotFound()

    monkeypatch.setattr(service, "mark_read", fake_mark)

    response = await api_client.put(f"/notifications/{uuid4()}/read", headers=HEADERS)

    assert response.status_code == 404
    assert response.json()["detail"] == "notification_not_found"


@pytest.mark.asyncio
async def test_register_fcm_token(api_client, monkeypatch):
    now = datetime.now(timezone.utc)

    async def fake_register(user_id, token, *, device_type, device_id):
        return FcmTokenOut(
            id=uuid4(),
            token=token,
            device_type=device_type,
            device_id=device_id,
            created_at=now,
            updated_at=now,
        )

    monkeypatch.setattr(push, "register_token", fake_register)

    response = await api_client.post(
        "/notifications/fcm-tokens",
        json={"token": "fcm-abc", "device_type": "ios"},
        headers=HEADERS,
    )

    assert response.status_code == 201
    assert response.json()["device_type"] == "ios"


@pytest.mark.asyncio
async def test_register_rejects_unknown_device_type(api_client):
    response = await api_client.post(
        "/notifications/fcm-tokens",
        json={"token": "fcm-abc", "device_type": "toaster"},
        headers=HEADERS,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_remove_unknown_fcm_token(api_client, monkeypatch):
    async def fake_remove(user_id, token):
        raise FcmTokenNotFound()

    monkeypatch.setattr(push, "remove_token", fake_remove)

    response = await api_client.request(
        "DELETE",
        "/notifications/fcm-tokens",
        json={"token": "missing"},
        headers=HEADERS,
    )

    assert response.status_code == 404
    assert response.json()["detail"] == "fcm_token_not_found"
