"""Google OAuth (authorization code flow) client."""
import base64
import binascii
import json
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from app.config import Settings
from app.utils.logger import get_logger

logger = get_logger("google_oauth")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class GoogleOAuthError(RuntimeError):
    pass


class GoogleProfile(BaseModel):
    """What we keep from Google's userinfo response."""
    sub: str
    email: str | None = None
    email_verified: bool = False
    given_name: str | None = None
    family_name: str | None = None
    name: str | None = None
    picture: str | None = None

    @property
    def first_name(self) -> str:
        if self.given_name:
            return self.given_name
        return (self.name or "").split(" ")[0]

    @property
    def last_name(self) -> str:
        if self.family_name:
            return self.family_name
        return " ".join((self.name or "").split(" ")[1:])


def encode_state(referred_by: str | None) -> str | None:
    """Carry the referral code through Google as base64 JSON."""
    if not referred_by:
        return None
    raw = json.dumps({"referredBy": referred_by}).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_state(state: str | None) -> str | None:
    """Referral code from the state parameter; None when absent or unreadable."""
    if not state:
        return None
    try:
        padded = state + "=" * (-len(state) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8"))
    except (binascii.Error, ValueError, UnicodeError) as exc:
        logger.warning(f"Failed to parse OAuth state for referral code: {exc}")
        return None
    if not isinstance(data, dict):
        return None
    code = data.get("referredBy")
    return code if isinstance(code, str) and code else None


def build_authorization_url(settings: Settings, state: str | None = None) -> str:
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID or "",
        "redirect_uri": settings.GOOGLE_CALLBACK_URL,
        "response_type": "code",
        "scope": "openid profile email",
        "access_type": "online",
        "prompt": "select_account",
    }
    if state:
        params["state"] = state
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def exchange_code_for_profile(settings: Settings, code: str) -> GoogleProfile:
    """Trade the authorization code for tokens, then fetch the user's profile."""
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise GoogleOAuthError("Google OAuth is not configured")

    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            token_resp = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "code": code,
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "redirect_uri": settings.GOOGLE_CALLBACK_URL,
                    "grant_type": "authorization_code",
                },
            )
            if token_resp.status_code >= 400:
                raise GoogleOAuthError(f"Token exchange failed {token_resp.status_code}: {token_resp.text}")
            access_token = token_resp.json().get("access_token")
            if not access_token:
                raise GoogleOAuthError("Token response has no access_token")

            info_resp = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            if info_resp.status_code >= 400:
                raise GoogleOAuthError(f"Userinfo request failed {info_resp.status_code}: {info_resp.text}")
    except httpx.HTTPError as exc:
        raise GoogleOAuthError(f"Google unreachable: {exc}") from exc

    return GoogleProfile.model_validate(info_resp.json())
