"""SMTP delivery for rendered notification emails."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional

from wardstaff.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailResult:
    """Outcome of one delivery attempt."""

    success: bool
    recipient: str
    message_id: Optional[str] = None
    skipped: bool = False
    error: Optional[str] = None


def _build_message(to: str, subject: str, html_body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = f'"{settings.OFFICE_NAME}" <{settings.SMTP_FROM}>'
    msg["To"] = to
    msg["Subject"] = subject
    msg["Message-ID"] = make_msgid(domain=settings.SMTP_FROM.rpartition("@")[2] or None)
    msg.set_content("This message requires an HTML-capable mail client.")
    msg.add_alternative(html_body, subtype="html")
    return msg


def _deliver(msg: EmailMessage) -> None:
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
        if settings.SMTP_USE_TLS:
            smtp.starttls()
        if settings.SMTP_USER:
            smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        smtp.send_message(msg)


async def send_mail(to: str, subject: str, html_body: str) -> MailResult:
    """Send one HTML email.  Never raises; failures come back in the result."""
    if not settings.SMTP_HOST:
        logger.info("SMTP disabled; skipping mail to %s: %s", to, subject)
        return MailResult(success=False, recipient=to, skipped=True)

    msg = _build_message(to, subject, html_body)
    try:
        await asyncio.to_thread(_deliver, msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("mail to %s failed: %s", to, exc)
        return MailResult(success=False, recipient=to, error=str(exc))

    logger.info("mail sent to %s: %s", to, subject)
    return MailResult(success=True, recipient=to, message_id=msg["Message-ID"])
