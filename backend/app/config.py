from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    """App settings loaded from environment.
    - Keep defaults light for dev.
    - Override via .env or real env vars.
    - Frozen: build once at startup and pass it around.
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, frozen=True, extra="ignore")

    APP_NAME: str = "healthsocial_api"
    APP_DISPLAY_NAME: str = "Ditechted Health App"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True

    MONGODB_URI: str = "mongodb://localhost:27017/healthsocial_db"

    # JWT settings
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    # Token and cookie share the same lifetime
    AUTH_TOKEN_EXPIRE_DAYS: int = 7
    AUTH_COOKIE_NAME: str = "authToken"
    COOKIE_SECURE: bool = False

    # Raw CORS string from env (comma-separated); parsed via cors_origins property
    CORS_ORIGINS: str | None = None

    # Frontend URLs used in redirects and emails
    CLIENT_URL: str = "http://localhost:3000"
    SUCCESS_URL: str = "http://localhost:3000"

    # Google OAuth
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_CALLBACK_URL: str = "http://localhost:8000/auth/google/callback"

    # Cloudflare R2 storage config
    R2_ACCOUNT_ID: str | None = None
    R2_ACCESS_KEY_ID: str | None = None
    R2_SECRET_ACCESS_KEY: str | None = None
    R2_BUCKET_NAME: str | None = None
    # Public base URL, e.g. https://cdn.example.com or https://<account>.r2.cloudflarestorage.com/<bucket>
    R2_PUBLIC_BASE: str | None = None
    # Local fallback when R2 is not configured
    MEDIA_ROOT: str = "media"

    # Email provider config (dummy | resend)
    EMAIL_PROVIDER: str = "dummy"
    RESEND_API_KEY: str | None = None
    EMAIL_FROM: str = "no-reply@ditechted.health"
    EMAIL_MAX_ATTEMPTS: int = 5
    EMAIL_DISPATCH_INTERVAL_SECONDS: int = 30
    EMAIL_WORKER_ENABLED: bool = True

    VERIFICATION_CODE_TTL_MINUTES: int = 60
    POSTS_PER_HOUR_LIMIT: int = 10
    REFERRAL_CODE_MAX_ATTEMPTS: int = 10

    LOG_DIR: str = "logs"

    @property
    def cors_origins(self) -> List[str]:
        """Return CORS origins as a list, parsing comma-separated env string."""
        raw = self.CORS_ORIGINS or ""
        return [o.strip() for o in raw.split(",") if o.strip()]

    @property
    def r2_enabled(self) -> bool:
        return bool(
            self.R2_ACCOUNT_ID
            and self.R2_ACCESS_KEY_ID
            and self.R2_SECRET_ACCESS_KEY
            and self.R2_BUCKET_NAME
            and self.R2_PUBLIC_BASE
        )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
