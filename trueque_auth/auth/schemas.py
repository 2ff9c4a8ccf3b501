"""
Auth service — Pydantic V2 request/response schemas.

Separation of concerns:
  - *Request  models:  input from the client (strict extra="forbid")
  - *Response models:  output to the client (no password hash, ever)

Wire format is camelCase (``otpCode``, ``isVerified``); snake_case field
names are accepted on input as well.
"""
from __future__ import annotations

import re
import uuid
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from trueque_auth.auth.constants import (
    OTP_LENGTH,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    PHONE_PATTERN,
    PHONE_SEPARATORS,
    OTPChannel,
)
from trueque_auth.auth.models import User
from trueque_common.models.user import CurrentUser


# ── Shared base ───────────────────────────────────────────────────────────────

class _Base(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class _Out(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _check_phone(value: str | None) -> str | None:
    if value is None:
        return None
    value = re.sub(PHONE_SEPARATORS, "", value)
    if not value:
        return None
    if not re.match(PHONE_PATTERN, value):
        raise ValueError("Invalid phone number format.")
    return value


class _Identifier(_Base):
    """email and/or phone.  Blank strings count as missing."""

    email: EmailStr | None = None
    phone: str | None = None

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("phone")
    @classmethod
    def _valid_phone(cls, value: str | None) -> str | None:
        return _check_phone(value)


class _ChannelIdentifier(_Identifier):
    """Identifier plus the channel (``type`` on the wire) that must be filled in."""

    channel: OTPChannel = Field(alias="type")

    @model_validator(mode="after")
    def _identifier_matches_channel(self) -> "_ChannelIdentifier":
        if self.channel == OTPChannel.EMAIL and not self.email:
            raise ValueError("email is required when type is 'email'")
        if self.channel == OTPChannel.PHONE and not self.phone:
            raise ValueError("phone is required when type is 'phone'")
        return self

    @property
    def channel_identifiers(self) -> tuple[str | None, str | None]:
        """(email, phone) with only the identifier the code travels over."""
        if self.channel == OTPChannel.EMAIL:
            return self.email, None
        return None, self.phone


OTPCode = Annotated[str, Field(min_length=OTP_LENGTH, max_length=OTP_LENGTH, pattern=r"^\d{6}$")]
Password = Annotated[str, Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)]


# ── Requests ──────────────────────────────────────────────────────────────────

class RegisterRequest(_ChannelIdentifier):
    """Body for POST /auth/register.  The OTP must have been issued for purpose=register."""

    name: str = Field(min_length=1, max_length=150)
    otp_code: OTPCode


class LoginRequest(_ChannelIdentifier):
    """
    Body for POST /auth/login.

    password is optional: accounts created by OTP have none.  Accounts that do
    have one must send it alongside the code.
    """

    otp_code: OTPCode
    password: str | None = Field(default=None, max_length=PASSWORD_MAX_LENGTH)


class UpdateProfileRequest(_Base):
    name: str | None = Field(default=None, min_length=1, max_length=150)
    phone: str | None = None

    @field_validator("phone")
    @classmethod
    def _valid_phone(cls, value: str | None) -> str | None:
        return _check_phone(value)


class ChangePasswordRequest(_Base):
    current_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)
    new_password: Password


class ResetPasswordRequest(_ChannelIdentifier):
    """Body for POST /auth/reset-password (OTP issued with purpose=reset)."""

    otp_code: OTPCode
    new_password: Password


# ── Responses ─────────────────────────────────────────────────────────────────

class UserResponse(_Out):
    id: uuid.UUID
    name: str
    email: str | None = None
    phone: str | None = None
    is_verified: bool

    @classmethod
    def from_user(cls, user: User | CurrentUser) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            is_verified=user.is_verified,
        )


class AuthResponse(_Out):
    """Returned by register and login."""

    user: UserResponse
    token: str


class UserEnvelope(_Out):
    """{"user": {...}} wrapper for /me and /profile."""

    user: UserResponse


class MessageResponse(_Out):
    message: str
