"""
Auth service — OTP controller.

Turns OTP Manager results (cooldown status, verification outcome) into HTTP
responses or exceptions.  Login-by-OTP lives here too, mirroring the
/otp/verify endpoint that clients call after /otp/send.
"""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from trueque_auth.auth.constants import OTPChannel, OTPPurpose
from trueque_auth.auth.controller import issue_session
from trueque_auth.auth.models import User
from trueque_auth.auth.schemas import MessageResponse
from trueque_auth.auth.service import find_user
from trueque_auth.auth.utils import normalize_email, normalize_phone
from trueque_auth.config import Settings
from trueque_auth.exceptions import (
    DeliveryError,
    DevelopmentOnly,
    InvalidOTP,
    MissingIdentifier,
    OTPCooldownActive,
    PasswordRequired,
    UserNotFound,
)
from trueque_auth.notifications import NotificationGateway
from trueque_auth.otp.schemas import (
    ClearOTPRequest,
    OTPSendResponse,
    OTPStatusResponse,
    OTPVerifyResponse,
    SendOTPRequest,
    VerifyOTPRequest,
)
from trueque_auth.otp.service import can_request_otp, clear_otps, send_otp, verify_otp

# Purposes that only make sense for an existing account.
_ACCOUNT_PURPOSES = (OTPPurpose.LOGIN, OTPPurpose.RESET)


def _owned_identifiers(
    user: User,
    email: str | None,
    phone: str | None,
) -> tuple[str | None, str | None]:
    """Drop any identifier that is not the user's own."""
    email = normalize_email(email)
    phone = normalize_phone(phone)
    return (
        email if email and email == user.email else None,
        phone if phone and phone == user.phone else None,
    )


async def send(
    session: AsyncSession,
    body: SendOTPRequest,
    settings: Settings,
    gateway: NotificationGateway,
) -> OTPSendResponse:
    email, phone = body.channel_identifiers
    if body.purpose in _ACCOUNT_PURPOSES:
        if await find_user(session, email, phone) is None:
            raise UserNotFound()

    cooldown = await can_request_otp(
        session,
        email=email,
        phone=phone,
        channel=body.channel,
        purpose=body.purpose,
        cooldown_seconds=settings.otp_cooldown_seconds,
    )
    if not cooldown.can_request:
        raise OTPCooldownActive(cooldown.message, cooldown.remaining_seconds)

    try:
        dispatch = await send_otp(
            session,
            gateway,
            email=email,
            phone=phone,
            channel=body.channel,
            purpose=body.purpose,
            expire_seconds=settings.otp_expire_seconds,
        )
    except DeliveryError:
        # persist the invalidated record before get_db rolls back
        await session.commit()
        raise
    return OTPSendResponse(message=dispatch.message, expires_in=dispatch.expires_in)


async def verify(
    session: AsyncSession,
    body: VerifyOTPRequest,
    settings: Settings,
) -> OTPVerifyResponse:
    if not body.email and not body.phone:
        raise MissingIdentifier()

    user = None
    email, phone = body.email, body.phone
    if body.purpose == OTPPurpose.LOGIN:
        # Checked first so a login code is not burned for an account that is gone.
        user = await find_user(session, email, phone)
        if user is None:
            raise UserNotFound()
        if user.password_hash:
            raise PasswordRequired()
        email, phone = _owned_identifiers(user, email, phone)

    result = await verify_otp(
        session,
        email=email,
        phone=phone,
        code=body.otp_code,
        purpose=body.purpose,
    )
    if not result.valid:
        raise InvalidOTP(result.message)

    if user is not None:
        issued = await issue_session(session, user, settings)
        return OTPVerifyResponse(message=result.message, token=issued.token, user=issued.user)
    return OTPVerifyResponse(message=result.message, otp_id=result.otp_id)


async def status(
    session: AsyncSession,
    *,
    email: str | None,
    phone: str | None,
    channel: OTPChannel,
    purpose: OTPPurpose,
    settings: Settings,
) -> OTPStatusResponse:
    if channel == OTPChannel.EMAIL and not email:
        raise MissingIdentifier("email")
    if channel == OTPChannel.PHONE and not phone:
        raise MissingIdentifier("phone")

    cooldown = await can_request_otp(
        session,
        email=email,
        phone=phone,
        channel=channel,
        purpose=purpose,
        cooldown_seconds=settings.otp_cooldown_seconds,
    )
    return OTPStatusResponse(
        can_request=cooldown.can_request,
        message=cooldown.message,
        remaining_time=cooldown.remaining_seconds,
    )


async def clear_test(
    session: AsyncSession,
    body: ClearOTPRequest,
    settings: Settings,
) -> MessageResponse:
    """Development helper: wipe every code issued to an identifier."""
    if not settings.is_development:
        raise DevelopmentOnly()
    if not body.email and not body.phone:
        raise MissingIdentifier()
    removed = await clear_otps(session, email=body.email, phone=body.phone)
    return MessageResponse(message=f"Cleared {removed} verification code(s).")
