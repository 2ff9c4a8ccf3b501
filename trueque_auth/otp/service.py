"""
OTP Manager — pure business logic for one-time codes.

Rules:
  - Zero FastAPI routing; errors are the shared HTTP exception types.
  - Only the AsyncSession passed in is touched; callers own the transaction,
    so invalidate-then-insert in create_otp commits (or rolls back) as one unit.
  - Every time-dependent function accepts ``now`` so expiry and cooldown
    boundaries are deterministic under test.

Record lifecycle: Created(unused) -> Used, or Created(unused) -> Expired.
Neither terminal state transitions back.
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import ColumnElement, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from trueque_auth.auth.constants import (
    OTP_COOLDOWN_SECONDS,
    OTP_EXPIRE_SECONDS,
    OTP_MAX,
    OTP_MIN,
    OTPChannel,
    OTPPurpose,
)
from trueque_auth.auth.models import OTPRecord
from trueque_auth.auth.utils import as_utc, mask_identifier, normalize_email, normalize_phone
from trueque_auth.exceptions import DeliveryError, MissingIdentifier
from trueque_auth.notifications import NotificationGateway

logger = logging.getLogger(__name__)

INVALID_OTP_MESSAGE = "Invalid or expired verification code."
VALID_OTP_MESSAGE = "Verification code accepted."
CAN_REQUEST_MESSAGE = "A new code can be requested."


@dataclass(frozen=True, slots=True)
class IssuedOTP:
    id: int
    code: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class OTPDispatch:
    message: str
    expires_in: int  # seconds


@dataclass(frozen=True, slots=True)
class OTPVerification:
    valid: bool
    message: str
    otp_id: int | None = None


@dataclass(frozen=True, slots=True)
class CooldownStatus:
    can_request: bool
    message: str
    remaining_seconds: int | None = None


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def _identifier_clause(email: str | None, phone: str | None) -> ColumnElement[bool] | None:
    """(email = ? OR phone = ?), built only from identifiers that are present."""
    clauses = []
    if email:
        clauses.append(OTPRecord.email == email)
    if phone:
        clauses.append(OTPRecord.phone == phone)
    if not clauses:
        return None
    return or_(*clauses)


def generate_code() -> str:
    """Return a 6-digit code drawn uniformly from [100000, 999999]."""
    return f"{random.SystemRandom().randint(OTP_MIN, OTP_MAX)}"


# ── Issue ─────────────────────────────────────────────────────────────────────

async def create_otp(
    session: AsyncSession,
    *,
    email: str | None,
    phone: str | None,
    channel: OTPChannel,
    purpose: OTPPurpose,
    expire_seconds: int = OTP_EXPIRE_SECONDS,
    now: datetime | None = None,
) -> IssuedOTP:
    """
    Store a fresh code for the identifier that matches the channel.

    Any unused code for the same identifier and purpose is invalidated first,
    so at most one code is ever live per (identifier, purpose).
    """
    email = normalize_email(email)
    phone = normalize_phone(phone)
    if channel == OTPChannel.EMAIL and not email:
        raise MissingIdentifier("email")
    if channel == OTPChannel.PHONE and not phone:
        raise MissingIdentifier("phone")

    now = _now(now)
    await session.execute(
        update(OTPRecord)
        .where(
            _identifier_clause(email, phone),
            OTPRecord.purpose == purpose,
            OTPRecord.is_used.is_(False),
        )
        .values(is_used=True)
    )

    # Exactly one identifier per record, the one the code is delivered to.
    record = OTPRecord(
        email=email if channel == OTPChannel.EMAIL else None,
        phone=phone if channel == OTPChannel.PHONE else None,
        code=generate_code(),
        channel=channel,
        purpose=purpose,
        expires_at=now + timedelta(seconds=expire_seconds),
        created_at=now,
    )
    session.add(record)
    await session.flush()
    logger.info(
        "OTP issued for %s (%s, %s)",
        mask_identifier(record.email or record.phone),
        channel.value,
        purpose.value,
    )
    return IssuedOTP(id=record.id, code=record.code, expires_at=record.expires_at)


async def send_otp(
    session: AsyncSession,
    gateway: NotificationGateway,
    *,
    email: str | None,
    phone: str | None,
    channel: OTPChannel,
    purpose: OTPPurpose,
    expire_seconds: int = OTP_EXPIRE_SECONDS,
) -> OTPDispatch:
    """
    Issue a code and hand it to the notification gateway.

    On delivery failure the record is kept, so the request still counts
    towards the cooldown, but it is marked used: a code nobody received must
    never verify.  DeliveryError is re-raised to the caller.
    """
    issued = await create_otp(
        session,
        email=email,
        phone=phone,
        channel=channel,
        purpose=purpose,
        expire_seconds=expire_seconds,
    )
    destination = normalize_email(email) if channel == OTPChannel.EMAIL else normalize_phone(phone)
    try:
        await gateway.send_code(channel, destination, issued.code, purpose)
    except DeliveryError:
        logger.error("OTP delivery failed for %s; code %s invalidated", mask_identifier(destination), issued.id)
        await session.execute(
            update(OTPRecord).where(OTPRecord.id == issued.id).values(is_used=True)
        )
        await session.flush()
        raise

    return OTPDispatch(
        message=f"Verification code sent to {destination}.",
        expires_in=expire_seconds,
    )


# ── Verify ────────────────────────────────────────────────────────────────────

async def verify_otp(
    session: AsyncSession,
    *,
    email: str | None,
    phone: str | None,
    code: str,
    purpose: OTPPurpose,
    now: datetime | None = None,
) -> OTPVerification:
    """
    Consume the most recent live code that matches, or report failure.

    Wrong, expired and already-used codes all yield the same message so the
    response cannot be used to probe which case applies.
    """
    identifier = _identifier_clause(normalize_email(email), normalize_phone(phone))
    if identifier is None or not code:
        return OTPVerification(valid=False, message=INVALID_OTP_MESSAGE)

    now = _now(now)
    result = await session.execute(
        select(OTPRecord)
        .where(
            identifier,
            OTPRecord.code == code,
            OTPRecord.purpose == purpose,
            OTPRecord.is_used.is_(False),
            OTPRecord.expires_at > now,
        )
        .order_by(OTPRecord.created_at.desc(), OTPRecord.id.desc())
        .limit(1)
    )
    otp = result.scalar_one_or_none()
    if otp is None:
        return OTPVerification(valid=False, message=INVALID_OTP_MESSAGE)

    otp.is_used = True
    otp.used_at = now
    await session.flush()
    logger.info("OTP verified for %s (%s)", mask_identifier(otp.email or otp.phone), purpose.value)
    return OTPVerification(valid=True, message=VALID_OTP_MESSAGE, otp_id=otp.id)


# ── Cooldown ──────────────────────────────────────────────────────────────────

async def can_request_otp(
    session: AsyncSession,
    *,
    email: str | None,
    phone: str | None,
    channel: OTPChannel,
    purpose: OTPPurpose,
    cooldown_seconds: int = OTP_COOLDOWN_SECONDS,
    now: datetime | None = None,
) -> CooldownStatus:
    """Allow one request per (identifier, channel, purpose) per cooldown window."""
    identifier = _identifier_clause(normalize_email(email), normalize_phone(phone))
    if identifier is None:
        return CooldownStatus(can_request=True, message=CAN_REQUEST_MESSAGE)

    now = _now(now)
    window_start = now - timedelta(seconds=cooldown_seconds)
    result = await session.execute(
        select(OTPRecord.created_at)
        .where(
            identifier,
            OTPRecord.channel == channel,
            OTPRecord.purpose == purpose,
            OTPRecord.created_at > window_start,
        )
        .order_by(OTPRecord.created_at.desc())
        .limit(1)
    )
    last_created = result.scalar_one_or_none()
    if last_created is None:
        return CooldownStatus(can_request=True, message=CAN_REQUEST_MESSAGE)

    elapsed = (now - as_utc(last_created)).total_seconds()
    remaining = math.ceil(cooldown_seconds - elapsed)
    if remaining <= 0:
        return CooldownStatus(can_request=True, message=CAN_REQUEST_MESSAGE)
    return CooldownStatus(
        can_request=False,
        message=f"Please wait {remaining} seconds before requesting another code.",
        remaining_seconds=remaining,
    )


# ── Maintenance ───────────────────────────────────────────────────────────────

async def cleanup_expired_otps(session: AsyncSession, *, now: datetime | None = None) -> int:
    """Delete unused codes past their expiry.  Returns the number removed."""
    result = await session.execute(
        delete(OTPRecord).where(
            OTPRecord.expires_at < _now(now),
            OTPRecord.is_used.is_(False),
        )
    )
    return result.rowcount or 0


async def clear_otps(
    session: AsyncSession,
    *,
    email: str | None,
    phone: str | None,
) -> int:
    """Delete every code, in any state, issued to the given identifiers."""
    identifier = _identifier_clause(normalize_email(email), normalize_phone(phone))
    if identifier is None:
        return 0
    result = await session.execute(delete(OTPRecord).where(identifier))
    return result.rowcount or 0
