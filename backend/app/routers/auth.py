from html import escape
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from app.config import Settings
from app.constants import DEFAULT_PROFILE_PICTURE, Role
from app.deps import AppSettings, CurrentUser, parse_object_id
from app.models import User
from app.rate_limit import limiter
from app.schemas import (
    ForgetPasswordIn,
    LoginIn,
    RegisterIn,
    ResetPasswordIn,
    RoleUpdateIn,
    UserOut,
    VerifyEmailIn,
)
from app.security import clear_auth_cookie, require_roles, set_auth_cookie
from app.services import auth_service
from app.services.google_oauth import (
    GoogleOAuthError,
    build_authorization_url,
    decode_state,
    encode_state,
    exchange_code_for_profile,
)
from app.utils.logger import get_logger

logger = get_logger("auth_router")

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def register(
    request: Request,
    payload: RegisterIn,
    background: BackgroundTasks,
    settings: Settings = AppSettings,
):
    """Create a local account; a 6-digit code is emailed for verification.
    Rate limit: 5 requests per minute per IP.
    """
    user = await auth_service.register_user(payload, settings, background)
    return {
        "success": True,
        "message": "User registered successfully.",
        "user": UserOut.from_user(user),
    }


@router.post("/verify-email")
@limiter.limit("10/minute")
async def verify_email(
    request: Request,
    payload: VerifyEmailIn,
    background: BackgroundTasks,
    settings: Settings = AppSettings,
):
    await auth_service.verify_email(payload.code, settings, background)
    return {"success": True, "message": "Email verified successfully."}


@router.post("/login")
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: LoginIn,
    response: Response,
    settings: Settings = AppSettings,
):
    token, user = await auth_service.login_with_password(
        email=payload.email, password=payload.password, settings=settings
    )
    set_auth_cookie(response, token, settings)
    return {
        "success": True,
        "message": "Login successful",
        "user": UserOut.from_user(user),
        "token": token,
    }


@router.post("/logout")
async def logout(response: Response, settings: Settings = AppSettings):
    clear_auth_cookie(response, settings)
    return {"success": True, "message": "Logout successful"}


@router.post("/forget-password")
@limiter.limit("5/minute")
async def forget_password(
    request: Request,
    payload: ForgetPasswordIn,
    background: BackgroundTasks,
    settings: Settings = AppSettings,
):
    await auth_service.forget_password(payload.email, settings, background)
    return {"success": True, "message": "Password reset email sent"}


@router.put("/reset-password/{reset_token}")
@limiter.limit("5/minute")
async def reset_password(
    request: Request,
    reset_token: str,
    payload: ResetPasswordIn,
    background: BackgroundTasks,
    settings: Settings = AppSettings,
):
    await auth_service.reset_password(reset_token, payload.new_password, settings, background)
    return {
        "success": True,
        "message": "Password reset successful. A confirmation email has been sent.",
    }


@router.get("/me")
async def me(current_user: User = CurrentUser):
    return {"success": True, "user": UserOut.from_user(current_user)}


@router.get("/user/{user_id}")
async def get_user(user_id: str, current_user: User = CurrentUser):
    user = await auth_service.get_user(parse_object_id(user_id, "user"))
    return {"success": True, "user": UserOut.from_user(user)}


@router.put("/update-user-role/{user_id}")
async def update_user_role(
    user_id: str,
    payload: RoleUpdateIn,
    current_user: User = Depends(require_roles([Role.ADMIN])),
):
    user = await auth_service.update_user_role(parse_object_id(user_id, "user"), payload.role)
    return {
        "success": True,
        "message": "User role updated successfully",
        "user": UserOut.from_user(user),
    }


@router.delete("/delete-user/{user_id}")
async def delete_user(
    user_id: str,
    response: Response,
    current_user: User = CurrentUser,
    settings: Settings = AppSettings,
):
    target_id = parse_object_id(user_id, "user")
    await auth_service.delete_user(target_id, current_user)
    if target_id == current_user.id:
        clear_auth_cookie(response, settings)
    return {"success": True, "message": "User deleted successfully"}


# ---------------- Google OAuth ----------------


@router.get("/google")
async def google_auth(referred_by: Optional[str] = None, settings: Settings = AppSettings):
    """Redirect to Google; a referral code rides along in the state parameter."""
    return RedirectResponse(
        build_authorization_url(settings, encode_state(referred_by)),
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/google/callback")
async def google_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    settings: Settings = AppSettings,
):
    failure_url = f"{settings.CLIENT_URL.rstrip('/')}/login?error=google_auth_failed"
    if error or not code:
        logger.error(f"Google authentication error: {error or 'missing authorization code'}")
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    try:
        profile = await exchange_code_for_profile(settings, code)
        token, user = await auth_service.login_with_google(
            profile, settings, referred_by=decode_state(state)
        )
    except GoogleOAuthError as exc:
        logger.error(f"Google authentication error: {exc}")
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)
    except Exception as exc:
        # Every failure ends on the same client-facing redirect
        logger.error(f"Google login failed: {exc}", exc_info=True)
        return RedirectResponse(failure_url, status_code=status.HTTP_302_FOUND)

    response = RedirectResponse(settings.SUCCESS_URL, status_code=status.HTTP_302_FOUND)
    set_auth_cookie(response, token, settings)
    logger.info(f"Google login for user {user.id}")
    return response


@router.get("/google/success", response_class=HTMLResponse)
async def google_success(current_user: User = CurrentUser):
    picture = current_user.profile_picture or DEFAULT_PROFILE_PICTURE
    name = current_user.first_name or current_user.full_name
    return (
        f"<h1>Hello, {escape(name)}! Welcome!</h1>"
        "<p>Here's your profile picture:</p>"
        f'<img src="{escape(picture, quote=True)}" alt="Profile Picture" '
        'style="width:100px; height:100px; border-radius:50%;">'
    )


@router.get("/google/login-failed")
async def google_login_failed():
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"success": False, "message": "Login failed"},
    )


@router.get("/google/logout")
async def google_logout(response: Response, settings: Settings = AppSettings):
    clear_auth_cookie(response, settings)
    return {"success": True, "message": "User logged out successfully"}
