from beanie import Document, Indexed
from beanie import PydanticObjectId as OID
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING, IndexModel

from app.constants import EngagementKind, MediaKind, ModerationStatus, PostType, Visibility


class MediaItem(BaseModel):
    url: str
    public_id: str
    type: MediaKind
    width: int | None = None
    height: int | None = None
    size: int | None = None  # bytes


class Mention(BaseModel):
    user_id: OID
    username: str


class Engagement(BaseModel):
    likes: int = Field(0, ge=0)
    comments: int = Field(0, ge=0)
    shares: int = Field(0, ge=0)
    saves: int = Field(0, ge=0)

    def total(self) -> int:
        return self.likes + self.comments + self.shares + self.saves

    def get(self, kind: EngagementKind) -> int:
        return getattr(self, kind.value)


class Moderation(BaseModel):
    status: ModerationStatus = ModerationStatus.OK
    reason: str | None = None
    moderated_by: OID | None = None
    moderated_at: datetime | None = None


class Post(Document):
    """Social content authored by one user."""
    author_id: OID
    type: PostType
    content: str = Field(..., min_length=1, max_length=5000)
    media: list[MediaItem] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    mentions: list[Mention] = Field(default_factory=list)
    community_id: OID | None = None
    is_verified_content: bool = False
    visibility: Visibility = Visibility.PUBLIC

    engagement: Engagement = Field(default_factory=Engagement)
    # kept equal to engagement.total() so lists can sort on it
    total_engagement: int = 0
    moderation: Moderation = Field(default_factory=Moderation)

    is_active: bool = True
    view_count: int = Field(0, ge=0)

    # question posts
    is_answered: bool = False
    # article posts, minutes
    reading_time: int | None = None

    search_keywords: list[str] = Field(default_factory=list)

    created_at: Indexed(datetime) = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_removed(self) -> bool:
        return self.moderation.status == ModerationStatus.REMOVED

    class Settings:
        name = "posts"
        indexes = [
            IndexModel([("author_id", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("type", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("tags", ASCENDING)]),
            IndexModel([("community_id", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("visibility", ASCENDING), ("created_at", DESCENDING)]),
            IndexModel([("moderation.status", ASCENDING)]),
            IndexModel([("search_keywords", ASCENDING)]),
        ]
