from beanie import init_beanie
from pymongo import AsyncMongoClient

from app.config import Settings
from app.models import DOCUMENT_MODELS

_mongo_client: AsyncMongoClient | None = None


def _db_name_from_uri(uri: str) -> str:
    # Extract database name from URI, default to 'healthsocial_db' if not specified
    db_name = uri.rsplit("/", 1)[-1].split("?")[0]
    return db_name or "healthsocial_db"


async def init_db(settings: Settings, client=None) -> None:
    """Initialize MongoDB (Beanie) and register document models.

    ``client`` lets callers hand in an already-built client (tests, scripts).
    """
    global _mongo_client
    _mongo_client = client or AsyncMongoClient(settings.MONGODB_URI, tz_aware=True)
    await init_beanie(
        database=_mongo_client[_db_name_from_uri(settings.MONGODB_URI)],
        document_models=DOCUMENT_MODELS,
    )


async def ping_db() -> bool:
    """Check MongoDB connectivity."""
    if not _mongo_client:
        return False
    try:
        await _mongo_client.admin.command("ping")
        return True
    except Exception:
        return False


async def close_db() -> None:
    global _mongo_client
    if _mongo_client is not None:
        await _mongo_client.close()
        _mongo_client = None
