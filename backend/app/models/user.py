from beanie import Document, Indexed
from beanie import PydanticObjectId as OID
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime, timezone

from app.constants import Role, Language, DEFAULT_PROFILE_PICTURE


class User(Document):
    """Registered account (local credentials and/or Google-linked).

    Notes:
    - Local accounts always carry a password hash and a phone number.
    - Google accounts may have neither; google_id is then the login handle.
    """

    first_name: str
    last_name: str = ""
    email: Indexed(str, unique=True)  # stored lower-cased
    phone: str | None = None
    is_phone_verified: bool = False
    profile_picture: str = DEFAULT_PROFILE_PICTURE
    password_hash: str | None = None
    language: Language = Language.ENGLISH
    role: Role = Role.USER
    profile_id: OID | None = None

    # Account status
    is_active: bool = False
    is_email_verified: bool = False
    last_seen: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_login: datetime | None = None

    verification_token: str | None = None
    verification_token_expiry: datetime | None = None
    reset_password_token: str | None = None
    reset_password_token_expiry: datetime | None = None

    google_id: str | None = None

    referral_code: Indexed(str, unique=True)
    referred_by: str | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    class Settings:
        name = "users"
        # None fields are left out of the stored document so the sparse
        # google_id index only sees linked accounts.
        keep_nulls = False
        indexes = [
            IndexModel([("google_id", ASCENDING)], unique=True, sparse=True),
            IndexModel([("verification_token", ASCENDING)], sparse=True),
            IndexModel([("reset_password_token", ASCENDING)], sparse=True),
        ]
