from enum import Enum


class Role(str, Enum):
    """System roles for RBAC."""
    USER = "user"
    PATIENT = "patient"
    DOCTOR = "doctor"
    ADMIN = "admin"
    INFLUENCER = "influencer"


class Language(str, Enum):
    ENGLISH = "English"
    TWI = "Twi"
    EWE = "Ewe"
    HAUSA = "Hausa"
    OTHER = "Other"


class PostType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    ARTICLE = "article"
    QUESTION = "question"


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    COMMUNITY = "community"


class ModerationStatus(str, Enum):
    OK = "ok"
    FLAGGED = "flagged"
    REMOVED = "removed"


class EngagementKind(str, Enum):
    LIKES = "likes"
    COMMENTS = "comments"
    SHARES = "shares"
    SAVES = "saves"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ProfileVisibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    FRIENDS = "friends"


class EmailKind(str, Enum):
    VERIFICATION = "verification"
    WELCOME = "welcome"
    PASSWORD_RESET = "password_reset"
    PASSWORD_RESET_SUCCESS = "password_reset_success"


class EmailStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


DEFAULT_PROFILE_PICTURE = (
    "https://res.cloudinary.com/dz4qj1x8h/image/upload/v1709300000/default-profile-picture.png"
)

# Media upload limits for post attachments
MAX_MEDIA_FILES = 10
MAX_MEDIA_FILE_BYTES = 10 * 1024 * 1024
ALLOWED_MEDIA_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "video/mp4",
    "video/webm",
)

# Profile pictures
MAX_PROFILE_PICTURE_BYTES = 5 * 1024 * 1024

RATE_LIMIT_RETRY_AFTER_SECONDS = 3600
