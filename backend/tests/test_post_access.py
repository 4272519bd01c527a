"""Tests for read gates on single posts and for moderation."""
import pytest
from httpx import AsyncClient

from app.models import Post, User

FLAG_REASON = "Possible medical misinformation"


@pytest.mark.asyncio
async def test_private_post_only_visible_to_author(
    client: AsyncClient, user: User, other_user: User, auth_headers, make_post
):
    post = await make_post(user, visibility="private")

    anonymous = await client.get(f"/posts/{post.id}")
    stranger = await client.get(f"/posts/{post.id}", headers=auth_headers(other_user))
    author = await client.get(f"/posts/{post.id}", headers=auth_headers(user))

    assert anonymous.status_code == 403
    assert stranger.status_code == 403
    assert stranger.json()["message"] == "Post is private"
    assert author.status_code == 200


@pytest.mark.asyncio
async def test_community_post_requires_sign_in(
    client: AsyncClient, user: User, other_user: User, auth_headers, make_post
):
    post = await make_post(user, visibility="community")

    anonymous = await client.get(f"/posts/{post.id}")
    member = await client.get(f"/posts/{post.id}", headers=auth_headers(other_user))

    assert anonymous.status_code == 401
    assert member.status_code == 200


@pytest.mark.asyncio
async def test_denied_reads_do_not_count_views(client: AsyncClient, user: User, make_post):
    post = await make_post(user, visibility="private")

    await client.get(f"/posts/{post.id}")

    assert (await Post.get(post.id)).view_count == 0


@pytest.mark.asyncio
async def test_flagged_post_hidden_from_everyone_but_author_and_admin(
    client: AsyncClient, user: User, other_user: User, admin: User, auth_headers, make_post
):
    post = await make_post(user, moderation={"status": "flagged", "reason": FLAG_REASON})

    anonymous = await client.get(f"/posts/{post.id}")
    stranger = await client.get(f"/posts/{post.id}", headers=auth_headers(other_user))
    author = await client.get(f"/posts/{post.id}", headers=auth_headers(user))
    moderator = await client.get(f"/posts/{post.id}", headers=auth_headers(admin))

    assert anonymous.status_code == 403
    assert stranger.json()["message"] == "This post is under review and not available for viewing"
    assert author.status_code == 200
    assert moderator.status_code == 200


@pytest.mark.asyncio
async def test_moderation_requires_admin(
    client: AsyncClient, user: User, other_user: User, auth_headers, make_post
):
    post = await make_post(user)

    response = await client.patch(
        f"/posts/{post.id}/moderate",
        json={"status": "flagged", "reason": FLAG_REASON},
        headers=auth_headers(other_user),
    )

    assert response.status_code == 403
    assert response.json()["message"] == "Admin access required for moderation"


@pytest.mark.asyncio
async def test_moderation_reason_required_unless_ok(client: AsyncClient, user: User, admin: User, auth_headers, make_post):
    post = await make_post(user)

    missing = await client.patch(
        f"/posts/{post.id}/moderate", json={"status": "flagged"}, headers=auth_headers(admin)
    )
    too_short = await client.patch(
        f"/posts/{post.id}/moderate", json={"status": "removed", "reason": "spam"}, headers=auth_headers(admin)
    )
    cleared = await client.patch(f"/posts/{post.id}/moderate", json={"status": "ok"}, headers=auth_headers(admin))

    assert missing.status_code == 400
    assert too_short.status_code == 400
    assert cleared.status_code == 200


@pytest.mark.asyncio
async def test_flag_records_moderator(client: AsyncClient, user: User, admin: User, auth_headers, make_post):
    post = await make_post(user)

    response = await client.patch(
        f"/posts/{post.id}/moderate",
        json={"status": "flagged", "reason": FLAG_REASON},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Post flagged successfully"
    moderation = response.json()["post"]["moderation"]
    assert moderation["status"] == "flagged"
    assert moderation["reason"] == FLAG_REASON
    assert moderation["moderated_by"] == str(admin.id)
    assert moderation["moderated_at"] is not None
    assert response.json()["post"]["is_active"] is True


@pytest.mark.asyncio
async def test_remove_retires_post(client: AsyncClient, user: User, admin: User, auth_headers, make_post):
    post = await make_post(user, content="Miracle cure for everything")

    await client.patch(
        f"/posts/{post.id}/moderate",
        json={"status": "removed", "reason": FLAG_REASON},
        headers=auth_headers(admin),
    )

    stored = await Post.get(post.id)
    assert stored.is_active is False
    assert stored.is_removed
    assert (await client.get(f"/posts/{post.id}")).status_code == 404
    assert (await client.get("/posts")).json()["posts"] == []
    assert (await client.get("/posts/search", params={"q": "miracle"})).json()["posts"] == []


@pytest.mark.asyncio
async def test_removed_post_cannot_be_edited_even_by_admin(
    client: AsyncClient, user: User, admin: User, auth_headers, make_post
):
    post = await make_post(user, moderation={"status": "removed", "reason": FLAG_REASON}, is_active=False)

    by_author = await client.put(f"/posts/{post.id}", json={"content": "Fixed"}, headers=auth_headers(user))
    by_admin = await client.put(f"/posts/{post.id}", json={"content": "Fixed"}, headers=auth_headers(admin))

    assert by_author.status_code == by_admin.status_code == 400
    assert by_admin.json()["message"] == "Cannot update removed post"


@pytest.mark.asyncio
async def test_any_moderation_transition_allowed(client: AsyncClient, user: User, admin: User, auth_headers, make_post):
    post = await make_post(user)
    headers = auth_headers(admin)

    for body in (
        {"status": "removed", "reason": FLAG_REASON},
        {"status": "flagged", "reason": FLAG_REASON},
        {"status": "ok"},
    ):
        response = await client.patch(f"/posts/{post.id}/moderate", json=body, headers=headers)
        assert response.status_code == 200

    stored = await Post.get(post.id)
    assert stored.moderation.status.value == "ok"
    # Clearing a removal does not bring the post back
    assert stored.is_active is False


@pytest.mark.asyncio
async def test_moderate_unknown_post(client: AsyncClient, admin: User, auth_headers):
    response = await client.patch(
        "/posts/5f0000000000000000000000/moderate",
        json={"status": "ok"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 404
