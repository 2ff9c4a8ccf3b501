"""
Twilio Programmable Messaging — async SMS delivery via httpx.

The code is generated and stored by this service; Twilio only carries the
text.  Returns a boolean and never raises, so the gateway decides what a
failure means.
"""
from __future__ import annotations

import logging

import httpx

from trueque_auth.config import Settings

logger = logging.getLogger(__name__)
_API_BASE = "https://api.twilio.com/2010-04-01/Accounts"


def is_configured(settings: Settings) -> bool:
    """Return True when the account credentials and a sender number are present."""
    return bool(
        settings.twilio_account_sid
        and settings.twilio_auth_token
        and settings.twilio_from_number
    )


async def send_sms(phone: str, body: str, settings: Settings) -> bool:
    if not is_configured(settings):
        return False

    url = f"{_API_BASE}/{settings.twilio_account_sid}/Messages.json"
    try:
        async with httpx.AsyncClient(timeout=15.0) as client:
            r = await client.post(
                url,
                data={"To": phone, "From": settings.twilio_from_number, "Body": body},
                auth=(settings.twilio_account_sid, settings.twilio_auth_token),
            )
        if r.status_code >= 400:
            logger.error("Twilio send_sms error %s: %s", r.status_code, r.text[:300])
            return False
        return True
    except httpx.HTTPError as exc:
        logger.error("Twilio send_sms failed: %s", exc)
        return False
