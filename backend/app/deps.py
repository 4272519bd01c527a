"""Per-route access gates for posts, composed as FastAPI dependencies.

Order on a guarded read: existence/active -> visibility -> flagged.
Mutations use existence -> ownership; moderation uses the admin gate.
"""
from datetime import datetime, timedelta, timezone
from typing import List, NamedTuple, Optional

from beanie import PydanticObjectId as OID
from bson.errors import InvalidId
from fastapi import Depends, File, UploadFile

from app.config import Settings
from app.constants import (
    ALLOWED_MEDIA_TYPES,
    MAX_MEDIA_FILE_BYTES,
    MAX_MEDIA_FILES,
    RATE_LIMIT_RETRY_AFTER_SECONDS,
    ModerationStatus,
    Visibility,
)
from app.errors import (
    BadRequestError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    UnauthorizedError,
    UnprocessableUploadError,
)
from app.models import Post, User
from app.security import can_moderate, get_app_settings, get_current_user, get_optional_user, is_admin
from app.utils.logger import get_logger

logger = get_logger("deps")

CurrentUser = Depends(get_current_user)
OptionalUser = Depends(get_optional_user)
AppSettings = Depends(get_app_settings)


def parse_object_id(value: str, label: str = "post") -> OID:
    try:
        return OID(value)
    except (InvalidId, TypeError, ValueError):
        raise BadRequestError(f"Invalid {label} ID format")


def is_author(post: Post, user: Optional[User]) -> bool:
    return user is not None and post.author_id == user.id


async def get_post_or_404(post_id: str) -> Post:
    post = await Post.get(parse_object_id(post_id))
    if not post:
        raise NotFoundError("Post not found")
    return post


async def get_accessible_post(
    post: Post = Depends(get_post_or_404),
    current_user: Optional[User] = OptionalUser,
) -> Post:
    """Existence, active and visibility gates for reads."""
    if not post.is_active:
        raise NotFoundError("Post is no longer available")
    if post.is_removed:
        raise NotFoundError("Post has been removed")

    match post.visibility:
        case Visibility.PRIVATE:
            if not is_author(post, current_user):
                raise ForbiddenError("Post is private")
        case Visibility.COMMUNITY:
            # Membership is not modelled; any signed-in caller may read
            if current_user is None:
                raise UnauthorizedError("Authentication required to view community posts")
        case Visibility.PUBLIC:
            pass
    return post


def check_flagged_access(post: Post, current_user: Optional[User]) -> None:
    if post.moderation.status != ModerationStatus.FLAGGED:
        return
    if is_author(post, current_user) or (current_user is not None and is_admin(current_user.role)):
        return
    raise ForbiddenError("This post is under review and not available for viewing")


async def get_viewable_post(
    post: Post = Depends(get_accessible_post),
    current_user: Optional[User] = OptionalUser,
) -> Post:
    check_flagged_access(post, current_user)
    return post


async def require_post_owner(
    post: Post = Depends(get_post_or_404),
    current_user: User = CurrentUser,
) -> Post:
    """Author or admin; everyone else gets 403."""
    if not is_author(post, current_user) and not is_admin(current_user.role):
        raise ForbiddenError("Not authorized to perform this action")
    return post


async def require_moderator(current_user: User = CurrentUser) -> User:
    if not can_moderate(current_user.role):
        raise ForbiddenError("Admin access required for moderation")
    return current_user


async def check_post_rate_limit(
    current_user: User = CurrentUser,
    settings: Settings = AppSettings,
) -> User:
    """Rolling one-hour cap on post creation, counted from stored posts."""
    one_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
    recent = await Post.find(
        Post.author_id == current_user.id,
        Post.created_at >= one_hour_ago,
    ).count()
    if recent >= settings.POSTS_PER_HOUR_LIMIT:
        logger.info(f"Post rate limit hit for user {current_user.id} ({recent} in the last hour)")
        raise RateLimitError(
            "Too many posts created recently. Please wait before creating another post.",
            retry_after=RATE_LIMIT_RETRY_AFTER_SECONDS,
        )
    return current_user


class BufferedUpload(NamedTuple):
    filename: str
    content_type: str
    data: bytes


async def validate_media_upload(files: List[UploadFile] = File(...)) -> List[BufferedUpload]:
    """Batch size, per-file size and mime allow-list; any violation is one 400."""
    if len(files) > MAX_MEDIA_FILES:
        raise UnprocessableUploadError(f"Cannot upload more than {MAX_MEDIA_FILES} files")

    uploads: List[BufferedUpload] = []
    for f in files:
        content_type = (f.content_type or "").lower()
        if content_type not in ALLOWED_MEDIA_TYPES:
            raise UnprocessableUploadError(f"File type {content_type or 'unknown'} is not allowed")
        data = await f.read()
        if len(data) > MAX_MEDIA_FILE_BYTES:
            raise UnprocessableUploadError(f"File {f.filename} exceeds maximum size of 10MB")
        if not data:
            raise UnprocessableUploadError(f"File {f.filename} is empty")
        uploads.append(BufferedUpload(filename=f.filename or "", content_type=content_type, data=data))
    return uploads
