from uuid import uuid4

import pytest

from app.domain.network import service
from app.domain.network.exceptions import ConnectionRequestNotFound, NetworkRateLimitExceeded, NetworkUserNotFound
from app.domain.network.schemas import FollowCounts

USER_ID = str(uuid4())
HEADERS = {"X-User-Id": USER_ID}


@pytest.mark.asyncio
async def test_cannot_follow_self(api_client):
    response = await api_client.post(f"/network/follow/{USER_ID}", headers=HEADERS)
    assert response.status_code == 400
    assert response.json()["detail"] == "cannot_follow_self"


@pytest.mark.asyncio
async def test_follow_messages(api_client, monkeypatch):
    results = iter([True, False])

    async def fake_follow(follower_id, target_id):
        return next(results)

    monkeypatch.setattr(service, "follow_user", fake_follow)
    target = uuid4()

    first = await api_client.post(f"/network/follow/{target}", headers=HEADERS)
    second = await api_client.post(f"/network/follow/{target}", headers=HEADERS)

    assert first.json() == {"success": True, "is_following": True, "message": "Successfully followed user"}
    assert second.json()["message"] == "Already following this user"


@pytest.mark.asyncio
async def test_follow_unknown_user(api_client, monkeypatch):
    async def fake_follow(follower_id, target_id):
        raise NetworkUserNotFound()

    monkeypatch.setattr(service, "follow_user", fake_follow)

    response = await api_client.post(f"/network/follow/{uuid4()}", headers=HEADERS)

    assert response.status_code == 404
    assert response.json()["detail"] == "user_not_found"


@pytest.mark.asyncio
async def test_follow_rate_limited(api_client, monkeypatch):
    async def fake_follow(follower_id, target_id):
        raise NetworkRateLimitExceeded("follow_per_minute")

    monkeypatch.setattr(service, "follow_user", fake_follow)

    response = await api_client.post(f"/network/follow/{uuid4()}", headers=HEADERS)

    assert response.status_code == 429


@pytest.mark.asyncio
async def test_counts(api_client, monkeypatch):
    async def fake_counts(user_id):
        return FollowCounts(followers=4, following=2)

    monkeypatch.setattr(service, "get_follow_counts", fake_counts)

    response = await api_client.get(f"/network/counts/{uuid4()}", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"followers": 4, "following": 2}


@pytest.mark.asyncio
async def test_accept_missing_request(api_client, monkeypatch):
    async def fake_accept(request_id, receiver_id):
        raise ConnectionRequestNotFound()

    monkeypatch.setattr(service, "accept_connection_request", fake_accept)

    response = await api_client.post(f"/network/connections/requests/{uuid4()}/accept", headers=HEADERS)

    assert response.status_code == 404
    assert response.json()["detail"] == "connection_request_not_found"


@pytest.mark.asyncio
async def test_malformed_dev_user_header_is_unauthorized(api_client):
    response = await api_client.get("/network/connections", headers={"X-User-Id": "not-a-uuid"})
    assert response.status_code == 401
    assert response.json()["detail"] == "invalid_user_id"
