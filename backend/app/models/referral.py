from beanie import Document, Indexed
from beanie import PydanticObjectId as OID
from pydantic import Field
from datetime import datetime, timezone


class Referral(Document):
    """Attribution record: referrer's code consumed by a new account."""
    referrer_id: Indexed(OID)
    referred_user_id: Indexed(OID, unique=True)
    referral_code: str
    status: str = "approved"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "referrals"
