from typing import Optional

from fastapi import APIRouter, Body, Depends, File, UploadFile, status

from app.config import Settings
from app.constants import MAX_PROFILE_PICTURE_BYTES, Role
from app.deps import AppSettings, CurrentUser, parse_object_id
from app.errors import UnprocessableUploadError
from app.models import User
from app.schemas import ProfileOut, ProfileUpdate, UserOut, VerificationReviewIn
from app.security import require_roles
from app.services import profile_service

router = APIRouter(tags=["user-profile"])

AdminUser = Depends(require_roles([Role.ADMIN]))


@router.post("/create-profile", status_code=status.HTTP_201_CREATED)
async def create_profile(
    payload: Optional[ProfileUpdate] = Body(None),
    current_user: User = CurrentUser,
):
    """Create the caller's profile, or return the one that already exists."""
    profile = await profile_service.create_profile_for_user(current_user.id, payload)
    await profile_service.link_profile(current_user, profile)
    return {
        "success": True,
        "message": "Profile created successfully",
        "profile": ProfileOut.from_profile(profile),
    }


@router.get("/user-profile")
async def get_my_profile(current_user: User = CurrentUser):
    profile = await profile_service.get_own_profile(current_user)
    return {"success": True, "profile": ProfileOut.from_profile(profile)}


@router.put("/user-profile/update-profile")
async def update_my_profile(payload: ProfileUpdate, current_user: User = CurrentUser):
    profile = await profile_service.update_own_profile(current_user, payload)
    return {
        "success": True,
        "message": "Profile updated successfully",
        "profile": ProfileOut.from_profile(profile),
    }


@router.delete("/user-profile/delete-profile")
async def delete_my_profile(current_user: User = CurrentUser):
    await profile_service.delete_own_profile(current_user)
    return {"success": True, "message": "User profile deleted successfully"}


@router.post("/user-profile/picture")
async def upload_profile_picture(
    file: UploadFile = File(...),
    current_user: User = CurrentUser,
    settings: Settings = AppSettings,
):
    """Upload a new avatar (image/*, up to 5MB)."""
    content_type = (file.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise UnprocessableUploadError("Profile picture must be an image")
    data = await file.read()
    if not data:
        raise UnprocessableUploadError("Uploaded file is empty")
    if len(data) > MAX_PROFILE_PICTURE_BYTES:
        raise UnprocessableUploadError("Profile picture exceeds maximum size of 5MB")

    user = await profile_service.set_profile_picture(
        settings, current_user, file_bytes=data, content_type=content_type
    )
    return {
        "success": True,
        "message": "Profile picture updated successfully",
        "user": UserOut.from_user(user),
    }


# ---------------- Admin lookups ----------------


@router.get("/user-profile/user/{user_id}")
async def get_profile_by_user(user_id: str, current_user: User = AdminUser):
    profile = await profile_service.get_profile_by_user_id(parse_object_id(user_id, "user"))
    return {"success": True, "profile": ProfileOut.from_profile(profile)}


@router.get("/user-profile/{profile_id}")
async def get_profile_by_id(profile_id: str, current_user: User = AdminUser):
    profile = await profile_service.get_profile_by_id(parse_object_id(profile_id, "profile"))
    return {"success": True, "profile": ProfileOut.from_profile(profile)}


@router.patch("/user-profile/{profile_id}/verification")
async def review_verification(
    profile_id: str,
    payload: VerificationReviewIn,
    current_user: User = AdminUser,
):
    profile = await profile_service.review_verification(
        parse_object_id(profile_id, "profile"), payload.status, current_user
    )
    return {
        "success": True,
        "message": f"Verification {payload.status.value}",
        "profile": ProfileOut.from_profile(profile),
    }
