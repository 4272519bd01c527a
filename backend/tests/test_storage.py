"""Tests for media storage against a stubbed R2 (S3 API) client."""
import pytest
from botocore.stub import ANY, Stubber

from app.config import Settings
from app.errors import ServerError
from app.utils import storage


@pytest.fixture
def r2_settings(settings: Settings) -> Settings:
    return settings.model_copy(
        update={
            "R2_ACCOUNT_ID": "account123",
            "R2_ACCESS_KEY_ID": "access-key",
            "R2_SECRET_ACCESS_KEY": "secret-key",
            "R2_BUCKET_NAME": "health-media",
            "R2_PUBLIC_BASE": "https://cdn.test/",
        }
    )


@pytest.fixture
def r2_stub(r2_settings: Settings, monkeypatch):
    client = storage._get_r2_client(r2_settings)
    monkeypatch.setattr(storage, "_get_r2_client", lambda settings: client)
    with Stubber(client) as stubber:
        yield stubber


def test_r2_client_only_when_fully_configured(settings: Settings, r2_settings: Settings):
    assert storage._get_r2_client(settings) is None
    assert storage._get_r2_client(r2_settings) is not None


@pytest.mark.asyncio
async def test_upload_goes_to_r2_when_configured(r2_settings: Settings, r2_stub: Stubber):
    r2_stub.add_response(
        "put_object",
        {},
        {"Bucket": "health-media", "Key": ANY, "Body": b"\x89PNG data", "ContentType": "image/png"},
    )

    stored = await storage.upload_media(
        r2_settings, owner_id="user1", folder="posts", file_bytes=b"\x89PNG data", content_type="image/png"
    )

    r2_stub.assert_no_pending_responses()
    assert stored.key.startswith("posts/user1/")
    assert stored.key.endswith(".png")
    assert stored.url == f"https://cdn.test/{stored.key}"


@pytest.mark.asyncio
async def test_r2_upload_failure_is_a_server_error(r2_settings: Settings, r2_stub: Stubber):
    r2_stub.add_client_error("put_object", service_error_code="InternalError", http_status_code=500)

    with pytest.raises(ServerError) as exc_info:
        await storage.upload_media(
            r2_settings, owner_id="user1", folder="posts", file_bytes=b"data", content_type="video/mp4"
        )

    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Failed to upload media file"
