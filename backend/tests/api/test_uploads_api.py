import pytest

from app.infra import storage

HEADERS = {"X-User-Id": "3f0d7c1e-2b8a-4f7e-9a52-5b1c9e0d4a11"}


@pytest.mark.asyncio
async def test_presign_builds_prefixed_key(api_client):
    response = await api_client.post(
        "/uploads/presign",
        json={"kind": "clip", "filename": "Drill.MP4", "mime": "video/mp4"},
        headers=HEADERS,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["key"].startswith("clips/videos/clips-")
    assert body["key"].endswith(".mp4")
    assert "op=put" in body["upload_url"]
    assert body["expires_in"] == storage.UPLOAD_PRESIGN_SECONDS


@pytest.mark.asyncio
async def test_presign_rejects_disallowed_mime(api_client):
    response = await api_client.post(
        "/uploads/presign",
        json={"kind": "post", "filename": "run.exe", "mime": "application/x-msdownload"},
        headers=HEADERS,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "mime_invalid"


@pytest.mark.asyncio
async def test_presign_requires_authentication(api_client):
    response = await api_client.post(
        "/uploads/presign",
        json={"kind": "profile", "filename": "me.png", "mime": "image/png"},
    )
    assert response.status_code == 401
