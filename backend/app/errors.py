"""HTTP error taxonomy.

Services raise these like plain ``HTTPException``; the handlers in ``main``
turn them into the ``{success: false, message, ...}`` envelope.
"""
from typing import Any

from fastapi import HTTPException, status

from app.constants import RATE_LIMIT_RETRY_AFTER_SECONDS


class ValidationError(HTTPException):
    """Structured per-field validation failure."""

    def __init__(self, message: str = "Validation failed", errors: list[dict[str, Any]] | None = None):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
        self.errors = errors or []


class ConflictError(HTTPException):
    def __init__(self, message: str = "Resource already exists"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class NotFoundOrExpiredError(HTTPException):
    def __init__(self, message: str = "Invalid or expired code"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class BadRequestError(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class NotFoundError(HTTPException):
    def __init__(self, message: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=message)


class ForbiddenError(HTTPException):
    def __init__(self, message: str = "Not authorized to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=message)


class UnauthorizedError(HTTPException):
    def __init__(self, message: str = "Unauthorized access"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=message)


class RateLimitError(HTTPException):
    def __init__(self, message: str, retry_after: int = RATE_LIMIT_RETRY_AFTER_SECONDS):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=message,
            headers={"Retry-After": str(retry_after)},
        )
        self.retry_after = retry_after


class UnprocessableUploadError(HTTPException):
    def __init__(self, message: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class ServerError(HTTPException):
    def __init__(self, message: str = "Server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


def error_body(exc: HTTPException) -> dict[str, Any]:
    """Response envelope for an HTTP error."""
    body: dict[str, Any] = {"success": False, "message": exc.detail}
    if isinstance(exc, ValidationError) and exc.errors:
        body["errors"] = exc.errors
    if isinstance(exc, RateLimitError):
        body["retryAfter"] = exc.retry_after
    return body
