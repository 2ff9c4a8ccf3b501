"""
Notification gateway — hands a one-time code to the right provider.

Email: SMTP first, Brevo as fallback.  SMS: Twilio.
Unlike the provider modules, the gateway *does* raise: ``DeliveryError`` when
no provider accepted the message, so the OTP flow can report the failure.

In development with no provider configured the message is only logged,
mirroring a local mail catcher.
"""
from __future__ import annotations

import logging

from fastapi import Depends

from trueque_auth.auth.constants import OTPChannel, OTPPurpose
from trueque_auth.auth.utils import mask_identifier
from trueque_auth.config import Settings, get_settings
from trueque_auth.exceptions import DeliveryError
from trueque_auth.notifications import brevo, smtp, twilio

logger = logging.getLogger(__name__)

_PURPOSE_TEXT = {
    OTPPurpose.LOGIN: "sign in",
    OTPPurpose.REGISTER: "create your account",
    OTPPurpose.RESET: "reset your password",
}


def _minutes(seconds: int) -> int:
    return max(1, seconds // 60)


def render_email(code: str, purpose: OTPPurpose, settings: Settings) -> tuple[str, str]:
    """Return (subject, html) for an OTP email."""
    minutes = _minutes(settings.otp_expire_seconds)
    subject = f"Your {settings.app_name} verification code - {code}"
    html = (
        f"<h2 style='text-align:center'>{settings.app_name}</h2>"
        f"<p>You asked for a verification code to <strong>{_PURPOSE_TEXT[purpose]}</strong>.</p>"
        f"<p style='text-align:center;margin:32px 0'>"
        f"<strong style='font-size:36px;letter-spacing:8px;font-family:monospace'>{code}</strong></p>"
        f"<p>This code expires in <strong>{minutes} minutes</strong> and can only be used once.</p>"
        f"<p style='color:#856404'>Never share this code with anyone. "
        f"{settings.app_name} will never ask you for it.</p>"
        "<p style='color:#6b7280;font-size:13px;margin-top:32px'>"
        "If you did not request this code, you can safely ignore this email.</p>"
    )
    return subject, html


def render_sms(code: str, settings: Settings) -> str:
    minutes = _minutes(settings.otp_expire_seconds)
    return f"Your {settings.app_name} verification code is {code}. It expires in {minutes} minutes."


class NotificationGateway:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def send_code(
        self,
        channel: OTPChannel,
        destination: str,
        code: str,
        purpose: OTPPurpose,
    ) -> None:
        if channel == OTPChannel.EMAIL:
            await self._send_email(destination, code, purpose)
        else:
            await self._send_sms(destination, code)

    async def _send_email(self, to_email: str, code: str, purpose: OTPPurpose) -> None:
        settings = self.settings
        subject, html = render_email(code, purpose, settings)

        if smtp.is_configured(settings):
            if await smtp.deliver(to_email, subject, html, settings):
                return
            logger.warning("SMTP failed for %s, falling back to Brevo", mask_identifier(to_email))

        if brevo.is_configured(settings):
            if await brevo.deliver(to_email, subject, html, settings):
                return
            logger.error("Brevo fallback also failed for %s", mask_identifier(to_email))
            raise DeliveryError()

        if smtp.is_configured(settings):
            raise DeliveryError()
        self._simulate("email", to_email, code)

    async def _send_sms(self, phone: str, code: str) -> None:
        settings = self.settings
        if twilio.is_configured(settings):
            if await twilio.send_sms(phone, render_sms(code, settings), settings):
                return
            raise DeliveryError()
        self._simulate("sms", phone, code)

    def _simulate(self, kind: str, destination: str, code: str) -> None:
        if not self.settings.is_development:
            logger.error("No %s provider configured; cannot deliver to %s", kind, mask_identifier(destination))
            raise DeliveryError()
        logger.info("[dev] %s to %s: verification code %s", kind, destination, code)


def get_gateway(settings: Settings = Depends(get_settings)) -> NotificationGateway:
    return NotificationGateway(settings)
