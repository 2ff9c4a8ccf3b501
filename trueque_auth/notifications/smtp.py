"""
Primary email provider: any SMTP relay, reached with aiosmtplib.

The message carries a plain-text part plus the HTML alternative so that
text-only clients still show the code.  ``deliver`` reports success as a bool
and leaves the fallback decision to the gateway.
"""
from __future__ import annotations

import logging
import re
from email.message import EmailMessage
from email.utils import formataddr

import aiosmtplib

from trueque_auth.config import Settings

logger = logging.getLogger(__name__)

_SEND_TIMEOUT = 15


def is_configured(settings: Settings) -> bool:
    return bool(settings.smtp_host and settings.smtp_username)


def _plain_text(html: str) -> str:
    text = re.sub(r"<(br|/p|/h\d)[^>]*>", "\n", html)
    return re.sub(r"<[^>]+>", "", text).strip()


def build_message(to_email: str, subject: str, html: str, settings: Settings) -> EmailMessage:
    msg = EmailMessage()
    msg["From"] = formataddr((settings.smtp_from_name, settings.smtp_from_email))
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(_plain_text(html))
    msg.add_alternative(html, subtype="html")
    return msg


async def deliver(to_email: str, subject: str, html: str, settings: Settings) -> bool:
    if not is_configured(settings):
        return False
    try:
        await aiosmtplib.send(
            build_message(to_email, subject, html, settings),
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            start_tls=settings.smtp_start_tls,
            timeout=_SEND_TIMEOUT,
        )
    except (aiosmtplib.SMTPException, OSError) as exc:
        logger.error("SMTP relay %s rejected mail for %s: %s", settings.smtp_host, to_email, exc)
        return False
    return True
