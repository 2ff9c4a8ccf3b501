from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from trueque_auth.auth.constants import OTPChannel, OTPPurpose
from trueque_auth.auth.models import OTPRecord
from trueque_auth.exceptions import DeliveryError, MissingIdentifier
from trueque_auth.otp.service import (
    INVALID_OTP_MESSAGE,
    can_request_otp,
    cleanup_expired_otps,
    clear_otps,
    create_otp,
    generate_code,
    send_otp,
    verify_otp,
)

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
EMAIL = "ana@example.com"


async def _issue(session, *, email=EMAIL, phone=None, purpose=OTPPurpose.REGISTER, now=T0):
    channel = OTPChannel.EMAIL if email else OTPChannel.PHONE
    return await create_otp(
        session, email=email, phone=phone, channel=channel, purpose=purpose, now=now
    )


async def _verify(session, code, *, email=EMAIL, phone=None, purpose=OTPPurpose.REGISTER, now=T0):
    return await verify_otp(
        session, email=email, phone=phone, code=code, purpose=purpose, now=now
    )


def _other_code(code: str) -> str:
    return "100000" if code != "100000" else "100001"


# ── Generation ────────────────────────────────────────────────────────────────

def test_generate_code_is_six_ascii_digits() -> None:
    for _ in range(500):
        code = generate_code()
        assert len(code) == 6
        assert code.isascii() and code.isdigit()
        assert 100_000 <= int(code) <= 999_999


# ── Issue ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_create_otp_requires_identifier_matching_channel(db_session) -> None:
    with pytest.raises(MissingIdentifier):
        await create_otp(
            db_session,
            email=None,
            phone="+584121234567",
            channel=OTPChannel.EMAIL,
            purpose=OTPPurpose.LOGIN,
        )
    with pytest.raises(MissingIdentifier):
        await create_otp(
            db_session,
            email="  ",
            phone=None,
            channel=OTPChannel.EMAIL,
            purpose=OTPPurpose.LOGIN,
        )


@pytest.mark.asyncio
async def test_create_otp_stores_normalised_identifier_and_expiry(db_session) -> None:
    issued = await _issue(db_session, email="  Ana@Example.COM ")
    record = await db_session.get(OTPRecord, issued.id)
    assert record.email == EMAIL
    assert record.phone is None
    assert record.channel == OTPChannel.EMAIL
    assert record.is_used is False
    assert issued.expires_at == T0 + timedelta(minutes=5)


@pytest.mark.asyncio
async def test_second_issue_invalidates_first(db_session) -> None:
    first = await _issue(db_session)
    second = await _issue(db_session, now=T0 + timedelta(seconds=1))

    old = await db_session.get(OTPRecord, first.id)
    assert old.is_used is True

    result = await _verify(db_session, second.code, now=T0 + timedelta(seconds=2))
    assert result.valid is True
    assert result.otp_id == second.id


@pytest.mark.asyncio
async def test_issue_only_invalidates_same_purpose(db_session) -> None:
    login = await _issue(db_session, purpose=OTPPurpose.LOGIN)
    await _issue(db_session, purpose=OTPPurpose.RESET)

    result = await _verify(db_session, login.code, purpose=OTPPurpose.LOGIN)
    assert result.valid is True


# ── Verify ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_code_verifies_exactly_once(db_session) -> None:
    issued = await _issue(db_session)

    first = await _verify(db_session, issued.code)
    second = await _verify(db_session, issued.code)

    assert first.valid is True
    assert second.valid is False
    assert second.message == INVALID_OTP_MESSAGE

    record = await db_session.get(OTPRecord, issued.id)
    assert record.is_used is True
    assert record.used_at is not None


@pytest.mark.asyncio
async def test_expiry_boundary(db_session) -> None:
    issued = await _issue(db_session)

    late = await _verify(db_session, issued.code, now=T0 + timedelta(minutes=5, seconds=1))
    assert late.valid is False

    just_in_time = await _verify(db_session, issued.code, now=T0 + timedelta(minutes=5, seconds=-1))
    assert just_in_time.valid is True


@pytest.mark.asyncio
async def test_failures_share_one_message(db_session) -> None:
    issued = await _issue(db_session)

    wrong = await _verify(db_session, _other_code(issued.code))
    expired = await _verify(db_session, issued.code, now=T0 + timedelta(hours=1))
    await _verify(db_session, issued.code)
    used = await _verify(db_session, issued.code)

    assert {wrong.message, expired.message, used.message} == {INVALID_OTP_MESSAGE}
    assert not (wrong.valid or expired.valid or used.valid)


@pytest.mark.asyncio
async def test_verify_checks_purpose(db_session) -> None:
    issued = await _issue(db_session, purpose=OTPPurpose.REGISTER)
    result = await _verify(db_session, issued.code, purpose=OTPPurpose.LOGIN)
    assert result.valid is False


@pytest.mark.asyncio
async def test_verify_matches_phone_with_separators(db_session) -> None:
    issued = await _issue(db_session, email=None, phone="+58 412-123-4567")
    result = await _verify(db_session, issued.code, email=None, phone="+584121234567")
    assert result.valid is True


@pytest.mark.asyncio
async def test_verify_without_identifier_is_invalid(db_session) -> None:
    issued = await _issue(db_session)
    result = await _verify(db_session, issued.code, email="", phone=None)
    assert result.valid is False


# ── Cooldown ──────────────────────────────────────────────────────────────────

async def _cooldown(session, *, now, channel=OTPChannel.EMAIL, purpose=OTPPurpose.REGISTER):
    return await can_request_otp(
        session, email=EMAIL, phone=None, channel=channel, purpose=purpose, now=now
    )


@pytest.mark.asyncio
async def test_cooldown_blocks_then_allows(db_session) -> None:
    assert (await _cooldown(db_session, now=T0)).can_request is True

    await _issue(db_session)

    blocked = await _cooldown(db_session, now=T0)
    assert blocked.can_request is False
    assert blocked.remaining_seconds == 120

    halfway = await _cooldown(db_session, now=T0 + timedelta(seconds=59, milliseconds=500))
    assert halfway.can_request is False
    assert halfway.remaining_seconds == 61

    assert (await _cooldown(db_session, now=T0 + timedelta(seconds=120))).can_request is True
    assert (await _cooldown(db_session, now=T0 + timedelta(seconds=300))).can_request is True


@pytest.mark.asyncio
async def test_cooldown_is_per_channel_and_purpose(db_session) -> None:
    await _issue(db_session, purpose=OTPPurpose.REGISTER)

    assert (await _cooldown(db_session, now=T0, purpose=OTPPurpose.LOGIN)).can_request is True
    assert (await _cooldown(db_session, now=T0, channel=OTPChannel.PHONE)).can_request is True


@pytest.mark.asyncio
async def test_cooldown_counts_used_codes(db_session) -> None:
    issued = await _issue(db_session)
    await _verify(db_session, issued.code)

    assert (await _cooldown(db_session, now=T0 + timedelta(seconds=10))).can_request is False


# ── Maintenance ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_cleanup_removes_only_unused_expired_codes(db_session) -> None:
    stale = await _issue(db_session, email="stale@example.com")
    used = await _issue(db_session, email="used@example.com")
    await _verify(db_session, used.code, email="used@example.com")
    fresh = await _issue(db_session, email="fresh@example.com", now=T0 + timedelta(minutes=8))

    removed = await cleanup_expired_otps(db_session, now=T0 + timedelta(minutes=10))
    assert removed == 1

    remaining = (await db_session.execute(select(OTPRecord.id))).scalars().all()
    assert sorted(remaining) == sorted([used.id, fresh.id])
    assert stale.id not in remaining


@pytest.mark.asyncio
async def test_clear_otps_removes_every_state(db_session) -> None:
    issued = await _issue(db_session)
    await _verify(db_session, issued.code)
    await _issue(db_session, now=T0 + timedelta(seconds=5))
    await _issue(db_session, email="other@example.com")

    assert await clear_otps(db_session, email=EMAIL, phone=None) == 2
    count = (await db_session.execute(select(func.count()).select_from(OTPRecord))).scalar_one()
    assert count == 1
    assert await clear_otps(db_session, email=None, phone=None) == 0


# ── Delivery ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_send_otp_hands_stored_code_to_gateway(db_session, gateway) -> None:
    dispatch = await send_otp(
        db_session,
        gateway,
        email=EMAIL,
        phone=None,
        channel=OTPChannel.EMAIL,
        purpose=OTPPurpose.LOGIN,
    )

    assert dispatch.expires_in == 300
    assert EMAIL in dispatch.message
    assert len(gateway.sent) == 1
    sent = gateway.sent[0]
    assert sent.destination == EMAIL
    assert sent.purpose == OTPPurpose.LOGIN

    record = (await db_session.execute(select(OTPRecord))).scalar_one()
    assert record.code == sent.code


@pytest.mark.asyncio
async def test_delivery_failure_keeps_record_but_burns_code(db_session, gateway) -> None:
    gateway.fail = True
    with pytest.raises(DeliveryError):
        await send_otp(
            db_session,
            gateway,
            email=EMAIL,
            phone=None,
            channel=OTPChannel.EMAIL,
            purpose=OTPPurpose.REGISTER,
        )

    record = (await db_session.execute(select(OTPRecord))).scalar_one()
    assert record.is_used is True

    status = await can_request_otp(
        db_session,
        email=EMAIL,
        phone=None,
        channel=OTPChannel.EMAIL,
        purpose=OTPPurpose.REGISTER,
    )
    assert status.can_request is False
