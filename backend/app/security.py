from datetime import datetime, timedelta, timezone
from typing import Callable, List

from beanie import PydanticObjectId as OID
from fastapi import Depends, Request, Response
from jose import jwt, JWTError
from passlib.context import CryptContext

from app.config import Settings, get_settings
from app.constants import Role
from app.errors import ForbiddenError, UnauthorizedError
from app.models.user import User


def get_app_settings(request: Request) -> Settings:
    """Settings attached to the running app by create_app()."""
    return getattr(request.app.state, "settings", None) or get_settings()


# ------------------------ Password hashing helpers ------------------------

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    """Check a password; False when the account has no hash (Google-only)."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


# ------------------------ JWT helpers ------------------------


def create_access_token(user: User, settings: Settings) -> str:
    """Signed token bound to the user id and role."""
    expire = datetime.now(timezone.utc) + timedelta(days=settings.AUTH_TOKEN_EXPIRE_DAYS)
    to_encode = {"sub": str(user.id), "role": user.role.value, "exp": expire}
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise UnauthorizedError("Unauthorized access: Invalid or expired token")


def set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    """Cookie lifetime mirrors the token's own expiry."""
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=settings.AUTH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def clear_auth_cookie(response: Response, settings: Settings) -> None:
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def _token_from_request(request: Request, settings: Settings) -> str | None:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    # Bearer header is accepted for non-browser clients
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


async def _user_from_token(token: str, settings: Settings) -> User:
    payload = decode_token(token, settings)
    user_id: str | None = payload.get("sub")
    if user_id is None:
        raise UnauthorizedError("Unauthorized access: Invalid or expired token")
    try:
        user = await User.get(OID(user_id))
    except Exception:
        user = None
    if not user:
        raise UnauthorizedError("Unauthorized access: User not found")
    return user


async def get_current_user(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> User:
    """Resolve the caller from the auth cookie (or bearer header).
    Raises 401 if the token is missing, invalid, expired or the user is gone.
    """
    token = _token_from_request(request, settings)
    if not token:
        raise UnauthorizedError("Unauthorized access: No token provided")
    return await _user_from_token(token, settings)


async def get_optional_user(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> User | None:
    """Like get_current_user, but anonymous callers get None."""
    token = _token_from_request(request, settings)
    if not token:
        return None
    try:
        return await _user_from_token(token, settings)
    except UnauthorizedError:
        return None


# ------------------------ RBAC helpers ------------------------


def is_admin(role: Role) -> bool:
    match role:
        case Role.ADMIN:
            return True
        case Role.USER | Role.PATIENT | Role.DOCTOR | Role.INFLUENCER:
            return False


def can_moderate(role: Role) -> bool:
    match role:
        case Role.ADMIN:
            return True
        case Role.USER | Role.PATIENT | Role.DOCTOR | Role.INFLUENCER:
            return False


def require_roles(allowed: List[Role]) -> Callable:
    """FastAPI dependency factory to enforce role-based access.
    Usage: Depends(require_roles([Role.ADMIN]))
    """

    async def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise ForbiddenError("Insufficient permissions")
        return current_user

    return checker
