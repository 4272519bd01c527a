"""Transactional email: outbox persistence and delivery.

Request handlers only enqueue. Delivery happens right after the response (a
background task) and again from the periodic dispatcher for anything that
failed, so a provider outage never fails the request that caused the email.
"""
from datetime import datetime, timedelta, timezone

import httpx
from beanie import PydanticObjectId as OID
from fastapi import BackgroundTasks

from app.config import Settings
from app.constants import EmailKind, EmailStatus
from app.models import EmailJob, User
from app.utils import email_templates
from app.utils.logger import get_logger

logger = get_logger("notifications")

RESEND_SEND_URL = "https://api.resend.com/emails"
RETRY_BASE_DELAY_SECONDS = 30
# A claimed job stays hidden from other senders for this long
CLAIM_LEASE_SECONDS = 300


class EmailDeliveryError(RuntimeError):
    pass


async def send_email(settings: Settings, *, to: str, subject: str, html: str) -> None:
    """Hand one message to the configured provider."""
    provider = (settings.EMAIL_PROVIDER or "dummy").lower()
    if provider == "dummy":
        # Dev mode: nothing leaves the process, the log is the mailbox
        logger.info(f"[EMAIL] {to} => {subject}")
        return

    if provider != "resend":
        raise EmailDeliveryError(f"Unknown email provider: {settings.EMAIL_PROVIDER}")
    if not settings.RESEND_API_KEY:
        raise EmailDeliveryError("Email configuration is missing (RESEND_API_KEY)")

    headers = {
        "Authorization": f"Bearer {settings.RESEND_API_KEY}",
        "Content-Type": "application/json",
    }
    payload = {
        "from": f"{settings.APP_DISPLAY_NAME} <{settings.EMAIL_FROM}>",
        "to": [to],
        "subject": subject,
        "html": html,
    }
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            resp = await client.post(RESEND_SEND_URL, headers=headers, json=payload)
    except httpx.HTTPError as exc:
        raise EmailDeliveryError(f"Email provider unreachable: {exc}") from exc
    if resp.status_code >= 400:
        raise EmailDeliveryError(f"Email provider error {resp.status_code}: {resp.text}")


async def enqueue_email(*, kind: EmailKind, to: str, subject: str, html: str) -> EmailJob:
    job = EmailJob(kind=kind, to=to, subject=subject, html=html)
    await job.insert()
    logger.debug(f"Queued {kind.value} email {job.id} for {to}")
    return job


async def deliver_job(job: EmailJob, settings: Settings) -> bool:
    """Try one delivery; reschedule with backoff or give up after max attempts."""
    now = datetime.now(timezone.utc)
    job.attempts += 1
    try:
        await send_email(settings, to=job.to, subject=job.subject, html=job.html)
    except EmailDeliveryError as exc:
        job.last_error = str(exc)
        if job.attempts >= settings.EMAIL_MAX_ATTEMPTS:
            job.status = EmailStatus.FAILED
            logger.error(f"Giving up on email {job.id} to {job.to}: {exc}")
        else:
            job.status = EmailStatus.PENDING
            job.next_attempt_at = now + timedelta(seconds=RETRY_BASE_DELAY_SECONDS * 2 ** (job.attempts - 1))
            logger.warning(f"Email {job.id} attempt {job.attempts} failed: {exc}")
        await job.save()
        return False

    job.status = EmailStatus.SENT
    job.sent_at = now
    job.last_error = None
    await job.save()
    return True


async def claim_job(job_id: OID) -> bool:
    """Lease a due job to the caller; only one concurrent caller wins.

    The lease moves ``next_attempt_at`` forward, so a sender that dies
    mid-send leaves the job due again once the lease runs out.
    """
    now = datetime.now(timezone.utc)
    result = await EmailJob.find_one(
        {"_id": job_id, "status": EmailStatus.PENDING.value, "next_attempt_at": {"$lte": now}}
    ).update({"$set": {"next_attempt_at": now + timedelta(seconds=CLAIM_LEASE_SECONDS)}})
    return bool(result and result.modified_count)


async def deliver_job_by_id(job_id: OID, settings: Settings) -> None:
    if not await claim_job(job_id):
        return
    job = await EmailJob.get(job_id)
    if job:
        await deliver_job(job, settings)


async def dispatch_pending_emails(settings: Settings, limit: int = 50) -> int:
    """Deliver due outbox entries. Returns how many were sent."""
    now = datetime.now(timezone.utc)
    jobs = await (
        EmailJob.find(
            EmailJob.status == EmailStatus.PENDING,
            EmailJob.next_attempt_at <= now,
        )
        .sort("+next_attempt_at")
        .limit(limit)
        .to_list()
    )
    sent = 0
    for job in jobs:
        if not await claim_job(job.id):
            continue
        if await deliver_job(job, settings):
            sent += 1
    if jobs:
        logger.info(f"Email dispatcher: {sent}/{len(jobs)} delivered")
    return sent


async def _queue(
    background: BackgroundTasks | None,
    settings: Settings,
    *,
    kind: EmailKind,
    to: str,
    subject: str,
    html: str,
) -> EmailJob | None:
    # Best-effort: a failure here must not fail the calling request
    try:
        job = await enqueue_email(kind=kind, to=to, subject=subject, html=html)
    except Exception as exc:
        logger.error(f"Failed to queue {kind.value} email for {to}: {exc}", exc_info=True)
        return None
    if background is not None:
        background.add_task(deliver_job_by_id, job.id, settings)
    return job


async def queue_verification_email(
    background: BackgroundTasks | None, settings: Settings, user: User, code: str
) -> EmailJob | None:
    subject, html = email_templates.verification_email(code)
    return await _queue(
        background, settings, kind=EmailKind.VERIFICATION, to=user.email, subject=subject, html=html
    )


async def queue_welcome_email(
    background: BackgroundTasks | None, settings: Settings, user: User
) -> EmailJob | None:
    subject, html = email_templates.welcome_email(user.first_name, settings.APP_DISPLAY_NAME)
    return await _queue(
        background, settings, kind=EmailKind.WELCOME, to=user.email, subject=subject, html=html
    )


async def queue_password_reset_email(
    background: BackgroundTasks | None, settings: Settings, user: User, code: str
) -> EmailJob | None:
    reset_url = f"{settings.CLIENT_URL.rstrip('/')}/reset-password/{code}"
    subject, html = email_templates.password_reset_email(reset_url)
    return await _queue(
        background, settings, kind=EmailKind.PASSWORD_RESET, to=user.email, subject=subject, html=html
    )


async def queue_password_reset_success_email(
    background: BackgroundTasks | None, settings: Settings, user: User
) -> EmailJob | None:
    subject, html = email_templates.password_reset_success_email()
    return await _queue(
        background,
        settings,
        kind=EmailKind.PASSWORD_RESET_SUCCESS,
        to=user.email,
        subject=subject,
        html=html,
    )
