from datetime import datetime
from typing import Annotated, Optional, List

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.constants import (
    EngagementKind,
    Gender,
    Language,
    MediaKind,
    ModerationStatus,
    PostType,
    Role,
    VerificationStatus,
    Visibility,
)
from app.models import Post, User, UserProfile
from app.models.profile import Address, Preferences, ProfileSettings
from app.utils.text import sanitize_content, sanitize_tags

ObjectIdStr = Annotated[str, Field(pattern=r"^[0-9a-fA-F]{24}$")]
GHANA_PHONE_PATTERN = r"^(\+233|233|0)(20|23|24|26|27|28|50|54|55|56|57|59)\d{7}$"

# -------------------- Auth / User Schemas --------------------


class RegisterIn(BaseModel):
    first_name: str = Field(..., min_length=3, max_length=30)
    last_name: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    phone: str = Field(..., pattern=GHANA_PHONE_PATTERN)
    password: str = Field(..., min_length=8, max_length=30)
    confirm_password: str
    language: Language = Language.ENGLISH
    referred_by: Optional[str] = Field(None, max_length=32)

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterIn":
        if self.password != self.confirm_password:
            raise ValueError("confirm_password must match password")
        return self


class VerifyEmailIn(BaseModel):
    code: str = Field(..., min_length=1)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ForgetPasswordIn(BaseModel):
    email: EmailStr


class ResetPasswordIn(BaseModel):
    new_password: str = Field(..., min_length=8, max_length=30)


class RoleUpdateIn(BaseModel):
    role: Role


class UserOut(BaseModel):
    """Identity as returned to clients: no hashes, no one-time codes."""
    id: str
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    language: Language
    role: Role
    profile_id: Optional[str] = None
    is_active: bool
    is_email_verified: bool
    is_phone_verified: bool
    referral_code: str
    referred_by: Optional[str] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(
            id=str(user.id),
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            phone=user.phone,
            profile_picture=user.profile_picture,
            language=user.language,
            role=user.role,
            profile_id=str(user.profile_id) if user.profile_id else None,
            is_active=user.is_active,
            is_email_verified=user.is_email_verified,
            is_phone_verified=user.is_phone_verified,
            referral_code=user.referral_code,
            referred_by=user.referred_by,
            last_login=user.last_login,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class AuthorOut(BaseModel):
    id: str
    first_name: str
    last_name: str
    profile_picture: Optional[str] = None
    role: Optional[Role] = None

    @classmethod
    def from_user(cls, user: User) -> "AuthorOut":
        return cls(
            id=str(user.id),
            first_name=user.first_name,
            last_name=user.last_name,
            profile_picture=user.profile_picture,
            role=user.role,
        )


# -------------------- Profile Schemas --------------------


class VerificationDocsIn(BaseModel):
    """Documents a professional submits; review fields are admin-only."""
    id_doc_url: Optional[str] = None
    license_number: Optional[str] = Field(None, max_length=100)
    license_issuer: Optional[str] = Field(None, max_length=200)


class ProfileUpdate(BaseModel):
    """Allow-listed profile fields a user may set on their own profile."""
    date_of_birth: Optional[datetime] = None
    gender: Optional[Gender] = None
    address: Optional[Address] = None
    bio: Optional[str] = Field(None, max_length=500)
    specialties: Optional[List[str]] = Field(None, max_length=20)
    verification_meta: Optional[VerificationDocsIn] = None
    preferences: Optional[Preferences] = None
    account_settings: Optional[ProfileSettings] = None

    model_config = {"extra": "forbid"}


class VerificationReviewIn(BaseModel):
    status: VerificationStatus


class VerificationMetaOut(BaseModel):
    id_doc_url: Optional[str] = None
    license_number: Optional[str] = None
    license_issuer: Optional[str] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    status: VerificationStatus


class ProfileOut(BaseModel):
    id: str
    user_id: str
    date_of_birth: Optional[datetime] = None
    gender: Optional[Gender] = None
    address: Address
    bio: Optional[str] = None
    specialties: List[str] = []
    verified: bool
    verification_meta: VerificationMetaOut
    preferences: Preferences
    account_settings: ProfileSettings

    @classmethod
    def from_profile(cls, profile: UserProfile) -> "ProfileOut":
        meta = profile.verification_meta
        return cls(
            id=str(profile.id),
            user_id=str(profile.user_id),
            date_of_birth=profile.date_of_birth,
            gender=profile.gender,
            address=profile.address,
            bio=profile.bio,
            specialties=profile.specialties,
            verified=profile.verified,
            verification_meta=VerificationMetaOut(
                id_doc_url=meta.id_doc_url,
                license_number=meta.license_number,
                license_issuer=meta.license_issuer,
                verified_by=str(meta.verified_by) if meta.verified_by else None,
                verified_at=meta.verified_at,
                status=meta.status,
            ),
            preferences=profile.preferences,
            account_settings=profile.account_settings,
        )


# -------------------- Post Schemas --------------------


class MediaIn(BaseModel):
    url: str = Field(..., min_length=1)
    public_id: str = Field(..., min_length=1)
    type: MediaKind
    width: Optional[int] = Field(None, gt=0)
    height: Optional[int] = Field(None, gt=0)
    size: Optional[int] = Field(None, gt=0)

    @field_validator("url")
    @classmethod
    def must_be_uri(cls, v: str) -> str:
        # Absolute URLs from object storage, or /media/ paths from the local fallback
        if v.startswith(("http://", "https://", "/media/")):
            return v
        raise ValueError("Media URL must be a valid URI")


class MentionIn(BaseModel):
    user_id: ObjectIdStr
    username: str = Field(..., min_length=3, max_length=30)


def _clean_content(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    cleaned = sanitize_content(v)
    if not cleaned:
        raise ValueError("Content cannot be empty")
    return cleaned


def _clean_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    cleaned = sanitize_tags(v)
    for tag in cleaned:
        if len(tag) < 2:
            raise ValueError("Each tag must be at least 2 characters")
        if len(tag) > 50:
            raise ValueError("Each tag cannot exceed 50 characters")
    return cleaned


class PostCreate(BaseModel):
    type: PostType
    content: str = Field(..., min_length=1, max_length=5000)
    media: List[MediaIn] = Field(default_factory=list, max_length=10)
    tags: List[str] = Field(default_factory=list, max_length=20)
    mentions: List[MentionIn] = Field(default_factory=list, max_length=50)
    community_id: Optional[ObjectIdStr] = None
    visibility: Visibility = Visibility.PUBLIC

    @field_validator("content")
    @classmethod
    def clean_content(cls, v: str) -> str:
        return _clean_content(v)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)


class PostUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1, max_length=5000)
    media: Optional[List[MediaIn]] = Field(None, max_length=10)
    tags: Optional[List[str]] = Field(None, max_length=20)
    mentions: Optional[List[MentionIn]] = Field(None, max_length=50)
    visibility: Optional[Visibility] = None

    @field_validator("content")
    @classmethod
    def clean_content(cls, v: Optional[str]) -> Optional[str]:
        return _clean_content(v)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class ModerateIn(BaseModel):
    status: ModerationStatus
    reason: Optional[str] = Field(None, min_length=10, max_length=500)

    @model_validator(mode="after")
    def reason_required_when_not_ok(self) -> "ModerateIn":
        if self.status != ModerationStatus.OK and not self.reason:
            raise ValueError("Reason is required for flagged or removed posts")
        return self


class MediaOut(BaseModel):
    url: str
    public_id: str
    type: MediaKind
    width: Optional[int] = None
    height: Optional[int] = None
    size: Optional[int] = None


class MentionOut(BaseModel):
    user_id: str
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class EngagementOut(BaseModel):
    likes: int
    comments: int
    shares: int
    saves: int


class ModerationOut(BaseModel):
    status: ModerationStatus
    reason: Optional[str] = None
    moderated_by: Optional[str] = None
    moderated_at: Optional[datetime] = None


class PostOut(BaseModel):
    id: str
    author_id: str
    author: Optional[AuthorOut] = None
    type: PostType
    content: str
    media: List[MediaOut] = []
    tags: List[str] = []
    mentions: List[MentionOut] = []
    community_id: Optional[str] = None
    is_verified_content: bool
    visibility: Visibility
    engagement: EngagementOut
    total_engagement: int
    moderation: ModerationOut
    is_active: bool
    view_count: int
    is_answered: bool
    reading_time: Optional[int] = None
    search_keywords: List[str] = []
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_post(
        cls,
        post: Post,
        author: Optional[User] = None,
        mentioned: Optional[dict] = None,
    ) -> "PostOut":
        mentioned = mentioned or {}
        mentions = []
        for m in post.mentions:
            u = mentioned.get(m.user_id)
            mentions.append(
                MentionOut(
                    user_id=str(m.user_id),
                    username=m.username,
                    first_name=u.first_name if u else None,
                    last_name=u.last_name if u else None,
                )
            )
        return cls(
            id=str(post.id),
            author_id=str(post.author_id),
            author=AuthorOut.from_user(author) if author else None,
            type=post.type,
            content=post.content,
            media=[MediaOut(**m.model_dump()) for m in post.media],
            tags=post.tags,
            mentions=mentions,
            community_id=str(post.community_id) if post.community_id else None,
            is_verified_content=post.is_verified_content,
            visibility=post.visibility,
            engagement=EngagementOut(**post.engagement.model_dump()),
            total_engagement=post.total_engagement,
            moderation=ModerationOut(
                status=post.moderation.status,
                reason=post.moderation.reason,
                moderated_by=str(post.moderation.moderated_by) if post.moderation.moderated_by else None,
                moderated_at=post.moderation.moderated_at,
            ),
            is_active=post.is_active,
            view_count=post.view_count,
            is_answered=post.is_answered,
            reading_time=post.reading_time,
            search_keywords=post.search_keywords,
            created_at=post.created_at,
            updated_at=post.updated_at,
        )


class PaginationOut(BaseModel):
    currentPage: int
    totalPages: int
    totalPosts: int
    hasNextPage: bool
    hasPrevPage: bool


class EngagementUpdateOut(BaseModel):
    kind: EngagementKind
    value: int
    total_engagement: int
