from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status

from app.config import Settings
from app.constants import EngagementKind, PostType, Visibility
from app.deps import (
    AppSettings,
    BufferedUpload,
    CurrentUser,
    OptionalUser,
    check_post_rate_limit,
    get_post_or_404,
    get_viewable_post,
    parse_object_id,
    require_moderator,
    require_post_owner,
    validate_media_upload,
)
from app.errors import BadRequestError
from app.models import Post, User
from app.schemas import EngagementUpdateOut, ModerateIn, PostCreate, PostUpdate
from app.services import post_service

router = APIRouter(prefix="/posts", tags=["posts"])

SortField = Literal["created_at", "updated_at", "view_count", "total_engagement"]


def _page_response(posts, pagination) -> dict:
    return {"success": True, "posts": posts, "pagination": pagination}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_post(payload: PostCreate, current_user: User = Depends(check_post_rate_limit)):
    post = await post_service.create_post(current_user, payload)
    return {"success": True, "message": "Post created successfully", "post": post}


@router.get("")
async def list_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[PostType] = None,
    community_id: Optional[str] = None,
    author_id: Optional[str] = None,
    visibility: Visibility = Visibility.PUBLIC,
    sort_by: SortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    current_user: Optional[User] = OptionalUser,
):
    posts, pagination = await post_service.list_posts(
        current_user=current_user,
        page=page,
        limit=limit,
        type=type,
        community_id=parse_object_id(community_id, "community") if community_id else None,
        author_id=parse_object_id(author_id, "author") if author_id else None,
        visibility=visibility,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return _page_response(posts, pagination)


# Static paths go before /{post_id}


@router.get("/trending")
async def trending(
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
):
    posts = await post_service.trending_posts(limit=limit, skip=skip)
    return {"success": True, "posts": posts}


@router.get("/search")
async def search(
    q: str = Query(..., min_length=1, max_length=100),
    type: Optional[PostType] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    if not q.strip():
        raise BadRequestError("Search query is required")
    posts, pagination = await post_service.search_posts(q, page=page, limit=limit, type=type)
    return _page_response(posts, pagination)


@router.get("/type/{post_type}")
async def by_type(
    post_type: str,
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
):
    try:
        parsed = PostType(post_type)
    except ValueError:
        raise BadRequestError("Invalid post type")
    posts = await post_service.posts_by_type(parsed, limit=limit, skip=skip)
    return {"success": True, "posts": posts}


@router.get("/my-posts")
async def my_posts(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[PostType] = None,
    current_user: User = CurrentUser,
):
    posts, pagination = await post_service.my_posts(current_user, page=page, limit=limit, type=type)
    return _page_response(posts, pagination)


@router.get("/author/{author_id}")
async def by_author(
    author_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[PostType] = None,
    current_user: Optional[User] = OptionalUser,
):
    posts, pagination = await post_service.posts_by_author(
        parse_object_id(author_id, "author"),
        current_user=current_user,
        page=page,
        limit=limit,
        type=type,
    )
    return _page_response(posts, pagination)


@router.post("/media", status_code=status.HTTP_201_CREATED)
async def upload_media(
    uploads: List[BufferedUpload] = Depends(validate_media_upload),
    current_user: User = CurrentUser,
    settings: Settings = AppSettings,
):
    """Store attachments and hand back descriptors for create/update."""
    media = await post_service.upload_post_media(settings, current_user, uploads)
    return {"success": True, "message": "Media uploaded successfully", "media": media}


# ---------------- Single post ----------------


@router.get("/{post_id}")
async def get_post(post: Post = Depends(get_viewable_post)):
    return {"success": True, "post": await post_service.view_post(post)}


@router.put("/{post_id}")
async def update_post(payload: PostUpdate, post: Post = Depends(require_post_owner)):
    updated = await post_service.update_post(post, payload)
    return {"success": True, "message": "Post updated successfully", "post": updated}


@router.delete("/{post_id}")
async def delete_post(
    post: Post = Depends(require_post_owner),
    current_user: User = CurrentUser,
):
    await post_service.soft_delete_post(post, current_user)
    return {"success": True, "message": "Post deleted successfully"}


@router.patch("/{post_id}/moderate")
async def moderate_post(
    payload: ModerateIn,
    moderator: User = Depends(require_moderator),
    post: Post = Depends(get_post_or_404),
):
    moderated = await post_service.moderate_post(
        post, status=payload.status, reason=payload.reason, moderator=moderator
    )
    return {
        "success": True,
        "message": f"Post {payload.status.value} successfully",
        "post": moderated,
    }


@router.post("/{post_id}/engagement/{kind}")
async def add_engagement(
    kind: EngagementKind,
    post: Post = Depends(get_viewable_post),
    current_user: User = CurrentUser,
):
    post = await post_service.increment_engagement(post, kind)
    return {
        "success": True,
        "engagement": EngagementUpdateOut(
            kind=kind, value=post.engagement.get(kind), total_engagement=post.total_engagement
        ),
    }


@router.delete("/{post_id}/engagement/{kind}")
async def remove_engagement(
    kind: EngagementKind,
    post: Post = Depends(get_viewable_post),
    current_user: User = CurrentUser,
):
    post = await post_service.decrement_engagement(post, kind)
    return {
        "success": True,
        "engagement": EngagementUpdateOut(
            kind=kind, value=post.engagement.get(kind), total_engagement=post.total_engagement
        ),
    }
