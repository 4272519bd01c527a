import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from beanie import PydanticObjectId as OID
from beanie.operators import In
from pymongo import ASCENDING, DESCENDING

from app.config import Settings
from app.constants import EngagementKind, ModerationStatus, PostType, Visibility
from app.deps import BufferedUpload
from app.errors import BadRequestError, ForbiddenError, UnauthorizedError
from app.models import MediaItem, Mention, Post, User
from app.schemas import MediaOut, PaginationOut, PostCreate, PostOut, PostUpdate
from app.utils.logger import get_logger
from app.utils.storage import upload_media
from app.utils.text import estimate_reading_time, extract_search_keywords

logger = get_logger("post_service")

SORT_FIELDS = {
    "created_at": "created_at",
    "updated_at": "updated_at",
    "view_count": "view_count",
    "total_engagement": "total_engagement",
}

# Listed posts: soft-deleted and moderation-removed ones never show up
LIVE_FILTER: Dict[str, Any] = {"is_active": True, "moderation.status": {"$ne": ModerationStatus.REMOVED.value}}


def _refresh_derived(post: Post) -> None:
    post.search_keywords = extract_search_keywords(post.content, post.tags)
    if post.type == PostType.ARTICLE:
        post.reading_time = estimate_reading_time(post.content)


def build_pagination(page: int, limit: int, total: int) -> PaginationOut:
    total_pages = math.ceil(total / limit) if limit else 0
    return PaginationOut(
        currentPage=page,
        totalPages=total_pages,
        totalPosts=total,
        hasNextPage=page < total_pages,
        hasPrevPage=page > 1,
    )


async def _attach_authors(posts: List[Post], with_mentions: bool = False) -> List[PostOut]:
    """Resolve authors (and optionally mentioned users) in one query."""
    ids = {p.author_id for p in posts}
    if with_mentions:
        ids.update(m.user_id for p in posts for m in p.mentions)
    users = await User.find(In(User.id, list(ids))).to_list() if ids else []
    by_id = {u.id: u for u in users}
    return [
        PostOut.from_post(p, author=by_id.get(p.author_id), mentioned=by_id if with_mentions else None)
        for p in posts
    ]


async def _paginate(
    filters: Dict[str, Any],
    *,
    page: int,
    limit: int,
    sort: List[Tuple[str, int]],
) -> Tuple[List[PostOut], PaginationOut]:
    total = await Post.find(filters).count()
    # _id breaks ties so equal sort keys page deterministically
    sort = sort + [("_id", sort[-1][1])]
    posts = await Post.find(filters).sort(sort).skip((page - 1) * limit).limit(limit).to_list()
    return await _attach_authors(posts), build_pagination(page, limit, total)


# ---------------- CRUD ----------------


async def create_post(author: User, payload: PostCreate) -> PostOut:
    post = Post(
        author_id=author.id,
        type=payload.type,
        content=payload.content,
        media=[MediaItem(**m.model_dump()) for m in payload.media],
        tags=payload.tags,
        mentions=[Mention(user_id=OID(m.user_id), username=m.username) for m in payload.mentions],
        community_id=OID(payload.community_id) if payload.community_id else None,
        visibility=payload.visibility,
    )
    _refresh_derived(post)
    await post.insert()
    logger.info(f"Post {post.id} created by {author.id}")
    return PostOut.from_post(post, author=author)


async def list_posts(
    *,
    current_user: Optional[User],
    page: int,
    limit: int,
    type: Optional[PostType] = None,
    community_id: Optional[OID] = None,
    author_id: Optional[OID] = None,
    visibility: Visibility = Visibility.PUBLIC,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[PostOut], PaginationOut]:
    filters: Dict[str, Any] = dict(LIVE_FILTER)
    filters["visibility"] = visibility.value

    match visibility:
        case Visibility.PRIVATE:
            # Private listings only ever contain the caller's own posts
            if current_user is None:
                raise UnauthorizedError("Authentication required to list private posts")
            if author_id is not None and author_id != current_user.id:
                raise ForbiddenError("Private posts are only visible to their author")
            author_id = current_user.id
        case Visibility.COMMUNITY:
            if current_user is None:
                raise UnauthorizedError("Authentication required to view community posts")
        case Visibility.PUBLIC:
            pass

    if type:
        filters["type"] = type.value
    if community_id:
        filters["community_id"] = community_id
    if author_id:
        filters["author_id"] = author_id

    direction = ASCENDING if sort_order == "asc" else DESCENDING
    return await _paginate(filters, page=page, limit=limit, sort=[(SORT_FIELDS[sort_by], direction)])


async def view_post(post: Post) -> PostOut:
    """Counts every successful read, repeats included."""
    await post.inc({Post.view_count: 1})
    return (await _attach_authors([post], with_mentions=True))[0]


async def update_post(post: Post, payload: PostUpdate) -> PostOut:
    if post.is_removed:
        raise BadRequestError("Cannot update removed post")

    data = payload.model_dump(exclude_unset=True)
    if "content" in data and payload.content is not None:
        post.content = payload.content
    if "tags" in data and payload.tags is not None:
        post.tags = payload.tags
    if "media" in data and payload.media is not None:
        post.media = [MediaItem(**m.model_dump()) for m in payload.media]
    if "mentions" in data and payload.mentions is not None:
        post.mentions = [Mention(user_id=OID(m.user_id), username=m.username) for m in payload.mentions]
    if "visibility" in data and payload.visibility is not None:
        post.visibility = payload.visibility

    if "content" in data or "tags" in data:
        _refresh_derived(post)
    post.updated_at = datetime.now(timezone.utc)
    await post.save()
    return (await _attach_authors([post]))[0]


async def soft_delete_post(post: Post, actor: User) -> None:
    post.is_active = False
    post.updated_at = datetime.now(timezone.utc)
    await post.save()
    logger.info(f"Post {post.id} soft-deleted by {actor.id}")


# ---------------- Queries ----------------


async def search_posts(
    q: str, *, page: int, limit: int, type: Optional[PostType] = None
) -> Tuple[List[PostOut], PaginationOut]:
    """Case-insensitive substring match over content, tags and keywords."""
    pattern = {"$regex": re.escape(q.strip()), "$options": "i"}
    filters: Dict[str, Any] = dict(LIVE_FILTER)
    filters["visibility"] = Visibility.PUBLIC.value
    filters["$or"] = [
        {"content": pattern},
        {"tags": pattern},
        {"search_keywords": pattern},
    ]
    if type:
        filters["type"] = type.value
    return await _paginate(filters, page=page, limit=limit, sort=[("created_at", DESCENDING)])


async def trending_posts(*, limit: int, skip: int) -> List[PostOut]:
    posts = await (
        Post.find(
            {
                "is_active": True,
                "visibility": Visibility.PUBLIC.value,
                "moderation.status": ModerationStatus.OK.value,
            }
        )
        .sort(
            [
                ("engagement.likes", DESCENDING),
                ("engagement.comments", DESCENDING),
                ("created_at", DESCENDING),
                ("_id", DESCENDING),
            ]
        )
        .skip(skip)
        .limit(limit)
        .to_list()
    )
    return await _attach_authors(posts)


async def posts_by_type(type: PostType, *, limit: int, skip: int) -> List[PostOut]:
    posts = await (
        Post.find(
            {
                **LIVE_FILTER,
                "type": type.value,
                "visibility": Visibility.PUBLIC.value,
            }
        )
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .skip(skip)
        .limit(limit)
        .to_list()
    )
    return await _attach_authors(posts)


async def my_posts(
    user: User, *, page: int, limit: int, type: Optional[PostType] = None
) -> Tuple[List[PostOut], PaginationOut]:
    # Includes the caller's private, community and flagged posts
    filters: Dict[str, Any] = {"author_id": user.id, "is_active": True}
    if type:
        filters["type"] = type.value
    return await _paginate(filters, page=page, limit=limit, sort=[("created_at", DESCENDING)])


async def posts_by_author(
    author_id: OID,
    *,
    current_user: Optional[User],
    page: int,
    limit: int,
    type: Optional[PostType] = None,
) -> Tuple[List[PostOut], PaginationOut]:
    filters: Dict[str, Any] = dict(LIVE_FILTER)
    filters["author_id"] = author_id
    if current_user is None:
        filters["visibility"] = Visibility.PUBLIC.value
    elif current_user.id != author_id:
        filters["visibility"] = {"$in": [Visibility.PUBLIC.value, Visibility.COMMUNITY.value]}
    if type:
        filters["type"] = type.value
    return await _paginate(filters, page=page, limit=limit, sort=[("created_at", DESCENDING)])


# ---------------- Moderation ----------------


async def moderate_post(
    post: Post, *, status: ModerationStatus, reason: Optional[str], moderator: User
) -> PostOut:
    """Any status may follow any other; removing also retires the post."""
    now = datetime.now(timezone.utc)
    post.moderation.status = status
    post.moderation.reason = reason
    post.moderation.moderated_by = moderator.id
    post.moderation.moderated_at = now
    if status == ModerationStatus.REMOVED:
        post.is_active = False
    post.updated_at = now
    await post.save()
    logger.info(f"Post {post.id} moderated to {status.value} by {moderator.id}")
    return (await _attach_authors([post]))[0]


# ---------------- Engagement ----------------


async def increment_engagement(post: Post, kind: EngagementKind) -> Post:
    await post.inc({f"engagement.{kind.value}": 1, Post.total_engagement: 1})
    return post


async def decrement_engagement(post: Post, kind: EngagementKind) -> Post:
    """Never goes below zero; the guard lives in the update filter."""
    field = f"engagement.{kind.value}"
    result = await Post.find_one({"_id": post.id, field: {"$gt": 0}}).update(
        {"$inc": {field: -1, "total_engagement": -1}}
    )
    if not result or result.modified_count == 0:
        raise BadRequestError(f"{kind.value.capitalize()} count is already zero")
    refreshed = await Post.get(post.id)
    return refreshed or post


# ---------------- Media ----------------


async def upload_post_media(
    settings: Settings, owner: User, uploads: List[BufferedUpload]
) -> List[MediaOut]:
    out: List[MediaOut] = []
    for upload in uploads:
        stored = await upload_media(
            settings,
            owner_id=str(owner.id),
            folder="posts",
            file_bytes=upload.data,
            content_type=upload.content_type,
        )
        kind = upload.content_type.split("/", 1)[0]
        out.append(
            MediaOut(
                url=stored.url,
                public_id=stored.key,
                type=kind if kind in ("image", "video") else "document",
                size=len(upload.data),
            )
        )
    return out
