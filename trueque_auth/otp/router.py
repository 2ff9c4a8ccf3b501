"""
Auth service — OTP router.

Issue, verify and inspect one-time codes.  Zero business logic.
"""

from fastapi import APIRouter, Depends, Query, Request
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from trueque_auth.auth.constants import PHONE_PATTERN, OTPChannel, OTPPurpose
from trueque_auth.auth.schemas import MessageResponse
from trueque_auth.config import Settings, get_settings
from trueque_auth.database import get_db
from trueque_auth.notifications import NotificationGateway, get_gateway
from trueque_auth.otp.controller import (
    clear_test as clear_test_controller,
    send as send_controller,
    status as status_controller,
    verify as verify_controller,
)
from trueque_auth.otp.schemas import (
    ClearOTPRequest,
    OTPSendResponse,
    OTPStatusResponse,
    OTPVerifyResponse,
    SendOTPRequest,
    VerifyOTPRequest,
)
from trueque_auth.rate_limit import OTP_SEND_LIMIT, limiter

router = APIRouter(prefix="/otp", tags=["otp"])


@router.post(
    "/send",
    response_model=OTPSendResponse,
    summary="Send a 6-digit code by email or SMS",
)
@limiter.limit(OTP_SEND_LIMIT)
async def send(
    request: Request,
    body: SendOTPRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    gateway: NotificationGateway = Depends(get_gateway),
) -> OTPSendResponse:
    return await send_controller(session, body, settings, gateway)


@router.post(
    "/verify",
    response_model=OTPVerifyResponse,
    summary="Verify a code; purpose=login also signs the user in",
)
async def verify(
    body: VerifyOTPRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> OTPVerifyResponse:
    return await verify_controller(session, body, settings)


@router.get(
    "/status",
    response_model=OTPStatusResponse,
    summary="Whether a new code may be requested yet",
)
async def otp_status(
    channel: OTPChannel = Query(alias="type"),
    purpose: OTPPurpose = Query(),
    email: EmailStr | None = Query(default=None),
    phone: str | None = Query(default=None, pattern=PHONE_PATTERN),
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> OTPStatusResponse:
    return await status_controller(
        session,
        email=email,
        phone=phone,
        channel=channel,
        purpose=purpose,
        settings=settings,
    )


@router.post(
    "/clear-test",
    response_model=MessageResponse,
    summary="Development only: delete all codes for an identifier",
)
async def clear_test(
    body: ClearOTPRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    return await clear_test_controller(session, body, settings)
