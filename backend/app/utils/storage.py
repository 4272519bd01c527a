import mimetypes
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import boto3
from starlette.concurrency import run_in_threadpool

from app.config import Settings
from app.errors import ServerError, UnprocessableUploadError
from app.utils.logger import get_logger

logger = get_logger("storage")


@dataclass(frozen=True)
class StoredObject:
    url: str
    key: str


def _ext_from_content_type(content_type: Optional[str]) -> str:
    if not content_type:
        return ""
    ct = content_type.lower()
    if ct in ("image/jpeg", "image/jpg"):
        return ".jpg"
    return mimetypes.guess_extension(ct) or ""


def _get_r2_client(settings: Settings):
    if not settings.r2_enabled:
        return None

    session = boto3.session.Session()
    return session.client(
        "s3",
        endpoint_url=f"https://{settings.R2_ACCOUNT_ID}.r2.cloudflarestorage.com",
        aws_access_key_id=settings.R2_ACCESS_KEY_ID,
        aws_secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        region_name="auto",
    )


def build_object_key(owner_id: str, folder: str, content_type: Optional[str]) -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    return f"{folder}/{owner_id}/{ts}_{uuid.uuid4().hex[:8]}{_ext_from_content_type(content_type)}"


async def upload_media(
    settings: Settings,
    *,
    owner_id: str,
    folder: str,
    file_bytes: bytes,
    content_type: str,
) -> StoredObject:
    """Store a buffered upload and return its public URL + storage key.

    Uses R2 when configured, otherwise writes under MEDIA_ROOT and serves it
    back through /media/.
    """
    if not owner_id or not folder or not file_bytes:
        raise UnprocessableUploadError("Missing upload information")

    key = build_object_key(owner_id, folder, content_type)

    client = _get_r2_client(settings)
    if client:
        try:
            await run_in_threadpool(
                client.put_object,
                Bucket=settings.R2_BUCKET_NAME,
                Key=key,
                Body=file_bytes,
                ContentType=content_type,
            )
            logger.info("Uploaded file to R2: %s", key)
            return StoredObject(url=f"{settings.R2_PUBLIC_BASE.rstrip('/')}/{key}", key=key)
        except Exception as exc:
            logger.error(f"Failed to upload to R2 ({key}): {exc}", exc_info=True)
            raise ServerError("Failed to upload media file")

    local_file_path = Path(settings.MEDIA_ROOT) / key
    try:
        local_file_path.parent.mkdir(parents=True, exist_ok=True)
        await run_in_threadpool(local_file_path.write_bytes, file_bytes)
        logger.info(f"Saved file locally to: {local_file_path}")
        return StoredObject(url=f"/media/{key}", key=key)
    except OSError as e:
        logger.error(f"Failed to save file locally: {e}", exc_info=True)
        raise ServerError("Failed to save media file")
