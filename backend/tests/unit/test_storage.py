import pytest

from app.infra import storage
from app.infra.storage import MAX_PRESIGN_SECONDS


def test_generate_key_layout():
    key = storage.generate_key("posts", "Game Day.JPG", "image/jpeg")
    prefix, category, name = key.split("/")
    assert (prefix, category) == ("posts", "images")
    assert name.startswith("posts-")
    assert name.endswith(".jpg")


@pytest.mark.parametrize(
    "mime, category",
    [("video/mp4", "videos"), ("application/pdf", "pdfs"), ("text/plain", "files"), (None, "files")],
)
def test_media_category(mime, category):
    assert storage.media_category(mime) == category


def test_generate_key_guesses_extension_from_mime():
    assert storage.generate_key("clips", None, "video/mp4").endswith(".mp4")


def test_extract_key_variants():
    assert storage.extract_key("posts/images/a.jpg") == "posts/images/a.jpg"
    assert storage.extract_key("/posts/images/a.jpg") == "posts/images/a.jpg"
    assert (
        storage.extract_key("https://athlinked-media.s3.us-east-1.amazonaws.com/clips/videos/b.mp4?X-Amz-Signature=abc")
        == "clips/videos/b.mp4"
    )
    assert storage.extract_key("https://lh3.googleusercontent.com/a/photo.jpg") is None
    assert storage.extract_key("") is None
    assert storage.extract_key(None) is None


def test_presign_passes_foreign_urls_through(memory_storage):
    google = "https://lh3.googleusercontent.com/a/photo.jpg"
    assert storage.presign(google) == google
    assert storage.presign(None) is None


def test_presign_caps_expiry(memory_storage):
    url = storage.presign("posts/images/a.jpg", expires_in=MAX_PRESIGN_SECONDS * 4)
    assert url == f"https://storage.test/posts/images/a.jpg?op=get&expires={MAX_PRESIGN_SECONDS}"


@pytest.mark.asyncio
async def test_upload_and_delete(memory_storage):
    key = await storage.upload("profiles/images/p.png", b"png", "image/png")
    assert memory_storage.objects[key] == b"png"
    assert await storage.delete(key) is True
    assert memory_storage.deleted == [key]
    assert await storage.delete(None) is False
