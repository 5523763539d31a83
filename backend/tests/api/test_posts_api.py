from datetime import datetime, timezone
from uuid import uuid4

import pytest

from app.domain.common.exceptions import AlreadyLiked, EngagementRateLimitExceeded
from app.domain.common.schemas import LikeResult
from app.domain.posts import service
from app.domain.posts.exceptions import PostForbidden, PostInvalid, PostNotFound
from app.domain.posts.schemas import PostOut

USER_ID = str(uuid4())
HEADERS = {"X-User-Id": USER_ID}


def _post(**extra) -> PostOut:
    data = {
        "id": uuid4(),
        "user_id": USER_ID,
        "username": "Jane Doe",
        "post_type": "text",
        "caption": "first practice",
        "created_at": datetime.now(timezone.utc),
    }
    data.update(extra)
    return PostOut(**data)


@pytest.mark.asyncio
async def test_create_requires_authentication(api_client):
    response = await api_client.post("/posts", json={"caption": "hi"})
    assert response.status_code == 401
    assert response.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_create_post_returns_created(api_client, monkeypatch):
    captured = {}

    async def fake_create(author_id, payload):
        captured["author"] = author_id
        captured["caption"] = payload.caption
        return _post(caption=payload.caption)

    monkeypatch.setattr(service, "create_post", fake_create)

    response = await api_client.post("/posts", json={"post_type": "text", "caption": "hello"}, headers=HEADERS)

    assert response.status_code == 201
    assert response.json()["caption"] == "hello"
    assert captured == {"author": USER_ID, "caption": "hello"}


@pytest.mark.asyncio
async def test_invalid_post_maps_to_bad_request(api_client, monkeypatch):
    async def fake_create(author_id, payload):
        raise PostInvalid("invalid_post_type")

    monkeypatch.setattr(service, "create_post", fake_create)

    response = await api_client.post("/posts", json={"post_type": "poll"}, headers=HEADERS)

    assert response.status_code == 400
    assert response.json()["detail"] == "invalid_post_type"


@pytest.mark.asyncio
async def test_anonymous_feed_passes_no_viewer(api_client, monkeypatch):
    seen = {}

    async def fake_feed(viewer_id, *, page, limit, post_type):
        seen.update(viewer=viewer_id, page=page, limit=limit)
        return []

    monkeypatch.setattr(service, "get_posts_feed", fake_feed)

    response = await api_client.get("/posts", params={"page": 2, "limit": 10})

    assert response.status_code == 200
    assert response.json() == {"posts": [], "page": 2, "limit": 10}
    assert seen == {"viewer": None, "page": 2, "limit": 10}


@pytest.mark.asyncio
async def test_feed_rejects_oversized_limit(api_client):
    response = await api_client.get("/posts", params={"limit": 500}, headers=HEADERS)
    assert response.status_code == 422
    assert response.json()["detail"] == "validation_error"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (PostNotFound(), 404),
        (AlreadyLiked(), 409),
        (EngagementRateLimitExceeded("like_rate_limited"), 429),
    ],
)
async def test_like_error_mapping(api_client, monkeypatch, error, status_code):
    async def fake_like(post_id, user_id):
        raise error

    monkeypatch.setattr(service, "like_post", fake_like)

    response = await api_client.post(f"/posts/{uuid4()}/like", headers=HEADERS)

    assert response.status_code == status_code
    assert response.json()["detail"] == error.reason
    assert "request_id" in response.json()


@pytest.mark.asyncio
async def test_like_returns_count(api_client, monkeypatch):
    async def fake_like(post_id, user_id):
        return LikeResult(liked=True, like_count=3)

    monkeypatch.setattr(service, "like_post", fake_like)

    response = await api_client.post(f"/posts/{uuid4()}/like", headers=HEADERS)

    assert response.status_code == 200
    assert response.json() == {"liked": True, "like_count": 3}


@pytest.mark.asyncio
async def test_delete_post_forbidden(api_client, monkeypatch):
    async def fake_delete(post_id, user_id):
        raise PostForbidden("You can only delete your own posts")

    monkeypatch.setattr(service, "delete_post", fake_delete)

    response = await api_client.delete(f"/posts/{uuid4()}", headers=HEADERS)

    assert response.status_code == 403


@pytest.mark.asyncio
async def test_empty_comment_is_rejected(api_client):
    response = await api_client.post(f"/posts/{uuid4()}/comments", json={"comment": ""}, headers=HEADERS)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_malformed_post_id(api_client):
    response = await api_client.get("/posts/not-a-uuid", headers=HEADERS)
    assert response.status_code == 422
