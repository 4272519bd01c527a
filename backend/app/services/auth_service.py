import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from beanie import PydanticObjectId as OID
from fastapi import BackgroundTasks
from pymongo.errors import DuplicateKeyError

from app.config import Settings
from app.constants import Role
from app.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    NotFoundOrExpiredError,
    BadRequestError,
    ServerError,
    ValidationError,
)
from app.models import Post, Referral, User
from app.schemas import RegisterIn
from app.security import create_access_token, hash_password, is_admin, verify_password
from app.services import notification_service, profile_service
from app.services.google_oauth import GoogleProfile
from app.utils.logger import get_logger

logger = get_logger("auth_service")

INVALID_CREDENTIALS = "Invalid credentials"


def generate_one_time_code() -> str:
    """6-digit numeric code used for email verification and password reset."""
    return f"{secrets.randbelow(1_000_000):06d}"


async def generate_unique_referral_code(settings: Settings) -> str:
    """Random 8-char hex code, re-drawn on collision up to a fixed number of attempts."""
    for _ in range(settings.REFERRAL_CODE_MAX_ATTEMPTS):
        code = secrets.token_hex(4).upper()
        if not await User.find_one(User.referral_code == code):
            return code
    logger.error(
        f"Could not generate a unique referral code after {settings.REFERRAL_CODE_MAX_ATTEMPTS} attempts"
    )
    raise ServerError("Could not generate a unique referral code")


async def _find_referrer(code: str) -> Optional[User]:
    return await User.find_one(User.referral_code == code)


async def _record_referral(referrer: User, referred: User, code: str) -> None:
    try:
        await Referral(
            referrer_id=referrer.id,
            referred_user_id=referred.id,
            referral_code=code,
        ).insert()
        logger.info(f"Referral record created for {referred.email} by referrer {referrer.email}")
    except Exception as exc:
        logger.error(f"Failed to record referral for user {referred.id}: {exc}", exc_info=True)


async def _ensure_profile(user: User) -> None:
    """Profile auto-creation is best-effort; the identity stands on its own."""
    try:
        profile = await profile_service.create_profile_for_user(user.id)
        await profile_service.link_profile(user, profile)
    except Exception as exc:
        logger.error(f"Failed to create profile for user {user.id}: {exc}", exc_info=True)


# ---------------- Local registration / verification ----------------


async def register_user(
    payload: RegisterIn, settings: Settings, background: Optional[BackgroundTasks] = None
) -> User:
    email = payload.email.strip().lower()
    if await User.find_one(User.email == email):
        raise ConflictError("User with this email already exists.")

    referrer = None
    if payload.referred_by:
        referrer = await _find_referrer(payload.referred_by)
        if not referrer:
            raise ValidationError(
                "Validation failed",
                errors=[{"field": "referred_by", "message": "Invalid referral code"}],
            )

    now = datetime.now(timezone.utc)
    code = generate_one_time_code()
    user = User(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        language=payload.language,
        referral_code=await generate_unique_referral_code(settings),
        referred_by=payload.referred_by,
        verification_token=code,
        verification_token_expiry=now + timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES),
    )
    try:
        await user.insert()
    except DuplicateKeyError:
        raise ConflictError("An account with this email already exists.")
    logger.info(f"Registered user {user.id} ({email})")

    await _ensure_profile(user)
    if referrer:
        await _record_referral(referrer, user, payload.referred_by)
    await notification_service.queue_verification_email(background, settings, user, code)
    return user


async def verify_email(
    code: str, settings: Settings, background: Optional[BackgroundTasks] = None
) -> User:
    now = datetime.now(timezone.utc)
    user = await User.find_one(
        User.verification_token == code,
        User.verification_token_expiry > now,
    )
    if not user:
        raise NotFoundOrExpiredError("Invalid or expired verification code")

    user.is_email_verified = True
    user.is_active = True
    user.verification_token = None
    user.verification_token_expiry = None
    user.updated_at = now
    await user.save()
    logger.info(f"Email verified for user {user.id}")

    await notification_service.queue_welcome_email(background, settings, user)
    return user


# ---------------- Login ----------------


async def login_with_password(*, email: str, password: str, settings: Settings) -> tuple[str, User]:
    """Same error for unknown email, wrong password and password-less accounts."""
    user = await User.find_one(User.email == email.strip().lower())
    if not user or not verify_password(password, user.password_hash):
        raise BadRequestError(INVALID_CREDENTIALS)

    now = datetime.now(timezone.utc)
    user.last_login = now
    user.last_seen = now
    await user.save()
    return create_access_token(user, settings), user


# ---------------- Password reset ----------------


async def forget_password(
    email: str, settings: Settings, background: Optional[BackgroundTasks] = None
) -> None:
    user = await User.find_one(User.email == email.strip().lower())
    if not user:
        raise NotFoundOrExpiredError("User not found")

    # Re-issuing overwrites any previous code
    code = generate_one_time_code()
    user.reset_password_token = code
    user.reset_password_token_expiry = datetime.now(timezone.utc) + timedelta(
        minutes=settings.VERIFICATION_CODE_TTL_MINUTES
    )
    await user.save()
    await notification_service.queue_password_reset_email(background, settings, user, code)


async def reset_password(
    reset_token: str,
    new_password: str,
    settings: Settings,
    background: Optional[BackgroundTasks] = None,
) -> User:
    now = datetime.now(timezone.utc)
    user = await User.find_one(
        User.reset_password_token == reset_token,
        User.reset_password_token_expiry > now,
    )
    if not user:
        raise NotFoundOrExpiredError("Invalid or expired reset token")

    user.password_hash = hash_password(new_password)
    user.reset_password_token = None
    user.reset_password_token_expiry = None
    user.updated_at = now
    await user.save()
    logger.info(f"Password reset for user {user.id}")

    await notification_service.queue_password_reset_success_email(background, settings, user)
    return user


# ---------------- Google OAuth ----------------


async def login_with_google(
    profile: GoogleProfile, settings: Settings, referred_by: Optional[str] = None
) -> tuple[str, User]:
    """Link an existing account by email, or create a pre-verified one.

    A referral code carried through the OAuth state must resolve before any
    account is created; an unknown code fails the whole login.
    """
    if not profile.email:
        raise BadRequestError("Email not found in Google profile")
    if not profile.email_verified:
        # An unverified Google address must never take over an account with that email
        raise BadRequestError("Google email address is not verified")

    email = profile.email.strip().lower()
    now = datetime.now(timezone.utc)
    user = await User.find_one(User.email == email)

    if user:
        user.google_id = profile.sub
        if profile.picture:
            user.profile_picture = profile.picture
        user.last_login = now
        user.last_seen = now
        await user.save()
        return create_access_token(user, settings), user

    referrer = None
    if referred_by:
        referrer = await _find_referrer(referred_by)
        if not referrer:
            raise BadRequestError("Invalid referral code.")

    user = User(
        google_id=profile.sub,
        email=email,
        first_name=profile.first_name or email.split("@")[0],
        last_name=profile.last_name,
        is_email_verified=True,
        is_active=True,
        referral_code=await generate_unique_referral_code(settings),
        referred_by=referred_by,
        last_login=now,
    )
    if profile.picture:
        user.profile_picture = profile.picture
    await user.insert()
    logger.info(f"Created Google user {user.id} ({email})")

    if referrer:
        await _record_referral(referrer, user, referred_by)
    await _ensure_profile(user)
    return create_access_token(user, settings), user


# ---------------- User administration ----------------


async def get_user(user_id: OID) -> User:
    user = await User.get(user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


async def update_user_role(user_id: OID, role: Role) -> User:
    user = await get_user(user_id)
    user.role = role
    user.updated_at = datetime.now(timezone.utc)
    await user.save()
    logger.info(f"User {user.id} role changed to {role.value}")
    return user


async def delete_user(user_id: OID, actor: User) -> None:
    """Self-service or admin. Removes the profile and retires authored posts."""
    if actor.id != user_id and not is_admin(actor.role):
        raise ForbiddenError("Not authorized to delete this user")

    user = await get_user(user_id)
    await profile_service.delete_profile_for_user(user.id)
    await Post.find(Post.author_id == user.id, Post.is_active == True).update(  # noqa: E712
        {"$set": {"is_active": False, "updated_at": datetime.now(timezone.utc)}}
    )
    await user.delete()
    logger.info(f"User {user_id} deleted by {actor.id}")


async def create_admin_user(
    *, email: str, password: str, first_name: str, last_name: str, settings: Settings
) -> tuple[User, bool]:
    """Bootstrap an active admin; returns (user, created). Existing accounts are promoted."""
    email = email.strip().lower()
    existing = await User.find_one(User.email == email)
    if existing:
        if existing.role != Role.ADMIN:
            existing.role = Role.ADMIN
            existing.updated_at = datetime.now(timezone.utc)
            await existing.save()
        return existing, False

    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=hash_password(password),
        role=Role.ADMIN,
        is_active=True,
        is_email_verified=True,
        referral_code=await generate_unique_referral_code(settings),
    )
    await user.insert()
    await _ensure_profile(user)
    return user, True
