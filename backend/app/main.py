import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, get_settings
from app.constants import RATE_LIMIT_RETRY_AFTER_SECONDS
from app.database import close_db, init_db, ping_db
from app.errors import error_body
from app.rate_limit import limiter
from app.routers import auth as auth_router
from app.routers import posts as posts_router
from app.routers import profile as profile_router
from app.services.notification_service import dispatch_pending_emails
from app.utils.logger import configure_logging, get_logger

logger = get_logger("main")


def _start_email_scheduler(settings: Settings) -> Optional[AsyncIOScheduler]:
    if not settings.EMAIL_WORKER_ENABLED:
        return None
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        dispatch_pending_emails,
        trigger="interval",
        seconds=settings.EMAIL_DISPATCH_INTERVAL_SECONDS,
        args=[settings],
        id="email_outbox_dispatcher",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(f"Email dispatcher started (every {settings.EMAIL_DISPATCH_INTERVAL_SECONDS}s)")
    return scheduler


def _field_errors(exc: RequestValidationError) -> list[dict]:
    errors = []
    for err in exc.errors():
        # Drop the leading "body"/"query"/"path" segment
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "Invalid value")})
    return errors


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        logger.info("Starting application...")
        await init_db(settings)
        logger.info("Database initialized")
        scheduler = None
        try:
            scheduler = _start_email_scheduler(settings)
        except Exception as e:
            logger.error(f"Failed to start email dispatcher: {e}", exc_info=True)
        yield
        if scheduler:
            scheduler.shutdown(wait=False)
            logger.info("Email dispatcher stopped")
        await close_db()
        logger.info("Shutting down application...")

    app = FastAPI(title="Health Social API", debug=settings.APP_DEBUG, lifespan=lifespan)
    app.state.settings = settings
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins or [settings.CLIENT_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router.router)
    app.include_router(profile_router.router)
    app.include_router(posts_router.router)

    # Error handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"HTTP {exc.status_code}: {exc.detail} - Path: {request.url.path}")
        else:
            logger.warning(f"HTTP {exc.status_code}: {exc.detail} - Path: {request.url.path}")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = _field_errors(exc)
        logger.warning(f"Validation error: {errors} - Path: {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "message": "Validation failed", "errors": errors},
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        logger.warning(f"Rate limit exceeded: {exc.detail} - Path: {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "success": False,
                "message": f"Too many requests: {exc.detail}",
                "retryAfter": RATE_LIMIT_RETRY_AFTER_SECONDS,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Server error"},
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {process_time:.3f}s"
        )
        return response

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz():
        if not await ping_db():
            raise HTTPException(status_code=503, detail="Database not ready")
        return {"status": "ok", "database": "up"}

    @app.get("/media/{file_path:path}")
    async def serve_media(file_path: str):
        """Serve files saved by the local storage fallback."""
        file_path_obj = Path(file_path)
        # Security: prevent directory traversal
        if ".." in file_path_obj.parts or file_path_obj.is_absolute():
            raise HTTPException(status_code=400, detail="Invalid file path")

        local_file_path = Path(settings.MEDIA_ROOT) / file_path_obj
        if local_file_path.is_file():
            return FileResponse(str(local_file_path))

        if settings.R2_PUBLIC_BASE:
            r2_url = f"{settings.R2_PUBLIC_BASE.rstrip('/')}/{file_path}"
            logger.info(f"Media file missing locally; redirecting to R2 URL: {r2_url}")
            return RedirectResponse(url=r2_url)

        logger.warning(f"Media file not found locally: {file_path} (looked in: {local_file_path})")
        raise HTTPException(status_code=404, detail="Media file not found")

    return app


app = create_app()
