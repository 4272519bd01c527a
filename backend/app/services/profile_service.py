from datetime import datetime, timezone
from typing import Optional

from beanie import PydanticObjectId as OID

from app.config import Settings
from app.constants import VerificationStatus
from app.errors import NotFoundError
from app.models import User, UserProfile
from app.schemas import ProfileUpdate
from app.utils.logger import get_logger
from app.utils.storage import upload_media

logger = get_logger("profile_service")


def _apply_update(profile: UserProfile, payload: ProfileUpdate) -> None:
    """Copy only the allow-listed fields the client actually sent."""
    data = payload.model_dump(exclude_unset=True)
    for field in ("date_of_birth", "gender", "bio", "specialties"):
        if field in data:
            setattr(profile, field, getattr(payload, field))
    if payload.address is not None:
        profile.address = payload.address
    if payload.preferences is not None:
        profile.preferences = payload.preferences
    if payload.account_settings is not None:
        profile.account_settings = payload.account_settings
    if payload.verification_meta is not None:
        # Review fields (status/verified_by/verified_at) stay server-owned
        docs = payload.verification_meta.model_dump(exclude_unset=True)
        meta = profile.verification_meta
        for key, value in docs.items():
            setattr(meta, key, value)


async def create_profile_for_user(
    user_id: OID, payload: Optional[ProfileUpdate] = None
) -> UserProfile:
    """Create the profile for a user; returns the existing one if present."""
    existing = await UserProfile.find_one(UserProfile.user_id == user_id)
    if existing:
        logger.warning(f"Profile already exists for user {user_id}; returning existing profile")
        return existing

    profile = UserProfile(user_id=user_id)
    if payload is not None:
        _apply_update(profile, payload)
    await profile.insert()
    logger.info(f"User profile created for user {user_id}")
    return profile


async def link_profile(user: User, profile: UserProfile) -> None:
    if user.profile_id != profile.id:
        user.profile_id = profile.id
        user.updated_at = datetime.now(timezone.utc)
        await user.save()


async def get_own_profile(user: User) -> UserProfile:
    profile = await UserProfile.find_one(UserProfile.user_id == user.id)
    if not profile:
        raise NotFoundError("User profile not found")
    return profile


async def update_own_profile(user: User, payload: ProfileUpdate) -> UserProfile:
    profile = await get_own_profile(user)
    _apply_update(profile, payload)
    await profile.save()
    return profile


async def delete_own_profile(user: User) -> None:
    profile = await get_own_profile(user)
    await profile.delete()
    if user.profile_id is not None:
        user.profile_id = None
        await user.save()
    logger.info(f"Profile {profile.id} deleted by its owner {user.id}")


async def get_profile_by_id(profile_id: OID) -> UserProfile:
    profile = await UserProfile.get(profile_id)
    if not profile:
        raise NotFoundError("User profile not found")
    return profile


async def get_profile_by_user_id(user_id: OID) -> UserProfile:
    profile = await UserProfile.find_one(UserProfile.user_id == user_id)
    if not profile:
        raise NotFoundError("User profile not found for this user ID")
    return profile


async def review_verification(
    profile_id: OID, status: VerificationStatus, reviewer: User
) -> UserProfile:
    """Admin decision on a professional's verification documents."""
    profile = await get_profile_by_id(profile_id)
    meta = profile.verification_meta
    meta.status = status
    if status == VerificationStatus.PENDING:
        meta.verified_by = None
        meta.verified_at = None
    else:
        meta.verified_by = reviewer.id
        meta.verified_at = datetime.now(timezone.utc)
    profile.verified = status == VerificationStatus.APPROVED
    await profile.save()
    logger.info(f"Profile {profile.id} verification set to {status.value} by {reviewer.id}")
    return profile


async def set_profile_picture(
    settings: Settings, user: User, *, file_bytes: bytes, content_type: str
) -> User:
    stored = await upload_media(
        settings,
        owner_id=str(user.id),
        folder="profile-pictures",
        file_bytes=file_bytes,
        content_type=content_type,
    )
    user.profile_picture = stored.url
    user.updated_at = datetime.now(timezone.utc)
    await user.save()
    return user


async def delete_profile_for_user(user_id: OID) -> None:
    """Cascade helper used when an identity is removed."""
    profile = await UserProfile.find_one(UserProfile.user_id == user_id)
    if profile:
        await profile.delete()
