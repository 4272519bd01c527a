from beanie import Document, Indexed
from beanie import PydanticObjectId as OID
from datetime import datetime
from pydantic import BaseModel, Field

from app.constants import Gender, ProfileVisibility, VerificationStatus


class Address(BaseModel):
    country: str | None = None
    city: str | None = None


class VerificationMeta(BaseModel):
    """Professional (doctor) verification documents and review outcome."""
    id_doc_url: str | None = None
    license_number: str | None = None
    license_issuer: str | None = None
    verified_by: OID | None = None
    verified_at: datetime | None = None
    status: VerificationStatus = VerificationStatus.PENDING


class NotificationPreferences(BaseModel):
    push: bool = True
    sms: bool = True
    email: bool = True


class Preferences(BaseModel):
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)


class PrivacySettings(BaseModel):
    profile_visibility: ProfileVisibility = ProfileVisibility.PUBLIC
    show_email: bool = False
    show_phone: bool = False


class ProfileSettings(BaseModel):
    privacy: PrivacySettings = Field(default_factory=PrivacySettings)


class UserProfile(Document):
    """One-to-one extension of User with personal and professional data."""
    user_id: Indexed(OID, unique=True)

    date_of_birth: datetime | None = None
    gender: Gender | None = None
    address: Address = Field(default_factory=Address)
    bio: str | None = Field(None, max_length=500)

    # Doctor-specific
    specialties: list[str] = Field(default_factory=list)
    verified: bool = False
    verification_meta: VerificationMeta = Field(default_factory=VerificationMeta)

    preferences: Preferences = Field(default_factory=Preferences)
    account_settings: ProfileSettings = Field(default_factory=ProfileSettings)

    class Settings:
        name = "user_profiles"
