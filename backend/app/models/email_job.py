from beanie import Document
from pydantic import Field
from pymongo import ASCENDING, IndexModel
from datetime import datetime, timezone

from app.constants import EmailKind, EmailStatus


class EmailJob(Document):
    """Outbound transactional email waiting in the outbox."""
    kind: EmailKind
    to: str
    subject: str
    html: str
    status: EmailStatus = EmailStatus.PENDING
    attempts: int = 0
    last_error: str | None = None
    next_attempt_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    sent_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "email_jobs"
        indexes = [
            IndexModel([("status", ASCENDING), ("next_attempt_at", ASCENDING)]),
        ]
