"""Tests for user profiles and professional verification review."""
from pathlib import Path

import pytest
from beanie import PydanticObjectId as OID
from httpx import AsyncClient

from app.config import Settings
from app.constants import VerificationStatus
from app.models import User, UserProfile


@pytest.fixture
async def profile(client: AsyncClient, user: User, auth_headers) -> dict:
    response = await client.post("/create-profile", headers=auth_headers(user))
    assert response.status_code == 201
    return response.json()["profile"]


@pytest.mark.asyncio
async def test_create_profile_links_user(client: AsyncClient, user: User, auth_headers):
    response = await client.post(
        "/create-profile", json={"bio": "Nurse in Kumasi"}, headers=auth_headers(user)
    )

    assert response.status_code == 201
    data = response.json()["profile"]
    assert data["user_id"] == str(user.id)
    assert data["bio"] == "Nurse in Kumasi"
    assert data["verification_meta"]["status"] == "pending"
    assert (await User.get(user.id)).profile_id is not None


@pytest.mark.asyncio
async def test_create_profile_twice_returns_existing(client: AsyncClient, user: User, auth_headers, profile):
    response = await client.post("/create-profile", headers=auth_headers(user))

    assert response.status_code == 201
    assert response.json()["profile"]["id"] == profile["id"]
    assert await UserProfile.find(UserProfile.user_id == user.id).count() == 1


@pytest.mark.asyncio
async def test_get_own_profile_missing(client: AsyncClient, user: User, auth_headers):
    response = await client.get("/user-profile", headers=auth_headers(user))

    assert response.status_code == 404
    assert response.json()["message"] == "User profile not found"


@pytest.mark.asyncio
async def test_update_profile_allow_listed_fields(client: AsyncClient, user: User, auth_headers, profile):
    response = await client.put(
        "/user-profile/update-profile",
        json={
            "bio": "General practitioner",
            "gender": "female",
            "address": {"country": "Ghana", "city": "Accra"},
            "specialties": ["pediatrics"],
            "account_settings": {"privacy": {"profile_visibility": "private", "show_email": True}},
        },
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    data = response.json()["profile"]
    assert data["bio"] == "General practitioner"
    assert data["address"] == {"country": "Ghana", "city": "Accra"}
    assert data["specialties"] == ["pediatrics"]
    assert data["account_settings"]["privacy"]["profile_visibility"] == "private"

    stored = await UserProfile.find_one(UserProfile.user_id == user.id)
    assert stored.gender.value == "female"


@pytest.mark.asyncio
async def test_update_profile_rejects_unknown_fields(client: AsyncClient, user: User, auth_headers, profile):
    response = await client.put(
        "/user-profile/update-profile", json={"verified": True}, headers=auth_headers(user)
    )

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "verified"


@pytest.mark.asyncio
async def test_users_cannot_approve_their_own_documents(
    client: AsyncClient, user: User, auth_headers, profile
):
    response = await client.put(
        "/user-profile/update-profile",
        json={"verification_meta": {"license_number": "MDC/1234", "status": "approved"}},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    meta = response.json()["profile"]["verification_meta"]
    assert meta["license_number"] == "MDC/1234"
    assert meta["status"] == "pending"
    assert response.json()["profile"]["verified"] is False


@pytest.mark.asyncio
async def test_bio_length_limit(client: AsyncClient, user: User, auth_headers, profile):
    response = await client.put(
        "/user-profile/update-profile", json={"bio": "x" * 501}, headers=auth_headers(user)
    )

    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_profile(client: AsyncClient, user: User, auth_headers, profile):
    response = await client.delete("/user-profile/delete-profile", headers=auth_headers(user))

    assert response.status_code == 200
    assert (await client.get("/user-profile", headers=auth_headers(user))).status_code == 404
    assert (await User.get(user.id)).profile_id is None


@pytest.mark.asyncio
async def test_profile_lookups_are_admin_only(
    client: AsyncClient, user: User, other_user: User, auth_headers, profile
):
    by_user = await client.get(f"/user-profile/user/{user.id}", headers=auth_headers(other_user))
    by_id = await client.get(f"/user-profile/{profile['id']}", headers=auth_headers(other_user))

    assert by_user.status_code == 403
    assert by_id.status_code == 403


@pytest.mark.asyncio
async def test_admin_profile_lookups(client: AsyncClient, admin: User, user: User, auth_headers, profile):
    by_user = await client.get(f"/user-profile/user/{user.id}", headers=auth_headers(admin))
    by_id = await client.get(f"/user-profile/{profile['id']}", headers=auth_headers(admin))
    missing = await client.get(f"/user-profile/user/{admin.id}", headers=auth_headers(admin))

    assert by_user.json()["profile"]["id"] == profile["id"]
    assert by_id.json()["profile"]["user_id"] == str(user.id)
    assert missing.status_code == 404
    assert missing.json()["message"] == "User profile not found for this user ID"


@pytest.mark.asyncio
async def test_admin_reviews_verification(client: AsyncClient, admin: User, auth_headers, profile):
    response = await client.patch(
        f"/user-profile/{profile['id']}/verification",
        json={"status": "approved"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    data = response.json()["profile"]
    assert data["verified"] is True
    assert data["verification_meta"]["verified_by"] == str(admin.id)
    assert data["verification_meta"]["verified_at"] is not None

    response = await client.patch(
        f"/user-profile/{profile['id']}/verification",
        json={"status": "pending"},
        headers=auth_headers(admin),
    )
    stored = await UserProfile.get(OID(profile["id"]))
    assert stored.verified is False
    assert stored.verification_meta.status == VerificationStatus.PENDING
    assert stored.verification_meta.verified_by is None


@pytest.mark.asyncio
async def test_upload_profile_picture(client: AsyncClient, user: User, auth_headers, settings: Settings):
    response = await client.post(
        "/user-profile/picture",
        files={"file": ("avatar.png", b"\x89PNG fake image bytes", "image/png")},
        headers=auth_headers(user),
    )

    assert response.status_code == 200
    url = response.json()["user"]["profile_picture"]
    assert url.startswith(f"/media/profile-pictures/{user.id}/")
    assert url.endswith(".png")
    saved = Path(settings.MEDIA_ROOT) / url.removeprefix("/media/")
    assert saved.read_bytes() == b"\x89PNG fake image bytes"

    served = await client.get(url)
    assert served.status_code == 200
    assert served.content == b"\x89PNG fake image bytes"


@pytest.mark.asyncio
async def test_profile_picture_must_be_image(client: AsyncClient, user: User, auth_headers):
    response = await client.post(
        "/user-profile/picture",
        files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
        headers=auth_headers(user),
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Profile picture must be an image"
