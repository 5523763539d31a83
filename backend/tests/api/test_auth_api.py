from datetime import datetime, timezone
from uuid import uuid4

import pytest

from app.domain.identity import models, schemas, service, sessions
from app.domain.identity.exceptions import AccountDeleted, LoginFailed, SignupConflict


def _user() -> models.User:
    return models.User(
        id=str(uuid4()),
        email="jane@example.com",
        username=None,
        full_name="Jane Doe",
        user_type="athlete",
        created_at=datetime.now(timezone.utc),
    )


@pytest.mark.asyncio
async def test_login_failure_is_unauthorized(api_client, monkeypatch):
    async def fake_login(identifier, password, *, user_agent, ip):
        raise LoginFailed()

    monkeypatch.setattr(service, "login", fake_login)

    response = await api_client.post("/login", json={"email": "jane@example.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid email/username or password"
    assert response.headers["X-Request-Id"]


@pytest.mark.asyncio
async def test_login_of_deleted_account_is_forbidden(api_client, monkeypatch):
    async def fake_login(identifier, password, *, user_agent, ip):
        raise AccountDeleted()

    monkeypatch.setattr(service, "login", fake_login)

    response = await api_client.post("/login", json={"identifier": "jane", "password": "whatever1"})

    assert response.status_code == 403
    assert response.json()["detail"] == "ACCOUNT_DELETED"


@pytest.mark.asyncio
async def test_signup_conflict(api_client, monkeypatch):
    async def fake_start(payload):
        raise SignupConflict("Email already registered")

    monkeypatch.setattr(service, "start_signup", fake_start)

    response = await api_client.post(
        "/signup/start",
        json={"email": "jane@example.com", "password": "s3cret-pass", "full_name": "Jane"},
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Email already registered"


@pytest.mark.asyncio
async def test_signup_rejects_unknown_user_type(api_client):
    response = await api_client.post(
        "/signup/start",
        json={"email": "jane@example.com", "password": "s3cret-pass", "full_name": "Jane", "user_type": "referee"},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_me_accepts_bearer_token(api_client, monkeypatch):
    user = _user()
    token = sessions.build_access_token(user)
    seen = {}

    async def fake_me(user_id):
        seen["user_id"] = user_id
        return sessions.to_user_out(user)

    monkeypatch.setattr(service, "get_me", fake_me)

    response = await api_client.get("/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 200
    assert response.json()["email"] == "jane@example.com"
    assert seen["user_id"] == user.id


@pytest.mark.asyncio
async def test_me_rejects_garbage_token(api_client):
    response = await api_client.get("/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["detail"] == "invalid_token"


@pytest.mark.asyncio
async def test_forgot_password_is_generic(api_client, monkeypatch):
    async def fake_request(identifier):
        return schemas.MessageResponse(message="If the account exists, a reset code has been sent")

    monkeypatch.setattr(service, "request_password_reset", fake_request)

    response = await api_client.post("/forgot-password/request", json={"username": "ghostuser"})

    assert response.status_code == 200
    assert response.json()["success"] is True


@pytest.mark.asyncio
async def test_reset_rejects_short_password(api_client):
    response = await api_client.post(
        "/forgot-password/reset",
        json={"identifier": "jane@example.com", "otp": "123456", "new_password": "short"},
    )
    assert response.status_code == 422
