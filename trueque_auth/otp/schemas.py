"""Request/response models for the /otp endpoints."""
from __future__ import annotations

from pydantic import Field

from trueque_auth.auth.constants import OTPPurpose
from trueque_auth.auth.schemas import (
    OTPCode,
    UserResponse,
    _ChannelIdentifier,
    _Identifier,
    _Out,
)


class SendOTPRequest(_ChannelIdentifier):
    purpose: OTPPurpose


class VerifyOTPRequest(_Identifier):
    """
    Body for POST /otp/verify.

    No channel here: the code is looked up by whichever identifiers are sent.
    """

    otp_code: OTPCode
    purpose: OTPPurpose


class ClearOTPRequest(_Identifier):
    pass


class OTPSendResponse(_Out):
    message: str
    expires_in: int = Field(description="Seconds until the code expires")


class OTPVerifyResponse(_Out):
    """token and user are only present for purpose=login; otpId for the others."""

    message: str
    token: str | None = None
    user: UserResponse | None = None
    otp_id: int | None = None


class OTPStatusResponse(_Out):
    can_request: bool
    message: str
    remaining_time: int | None = Field(default=None, description="Seconds left in the cooldown")
