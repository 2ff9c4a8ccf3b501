from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from trueque_auth.auth.models import AuthSession
from trueque_auth.auth.service import create_user
from trueque_auth.sessions.service import (
    cleanup_expired_sessions,
    create_session,
    delete_session,
    delete_user_sessions,
    generate_token,
    verify_session,
    verify_token,
)


@pytest_asyncio.fixture
async def user(db_session):
    return await create_user(db_session, name="Ana", email="ana@example.com")


async def _login(session, user, settings, **kwargs):
    token = generate_token(user, settings)
    await create_session(session, user_id=user.id, token=token, **kwargs)
    return token


async def _session_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(AuthSession))).scalar_one()


# ── Token ─────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_token_carries_user_claims(user, settings) -> None:
    claims = verify_token(generate_token(user, settings), settings)

    assert claims["sub"] == str(user.id)
    assert claims["userId"] == str(user.id)
    assert claims["email"] == "ana@example.com"
    assert claims["name"] == "Ana"
    assert claims["isVerified"] is True
    assert claims["exp"] - claims["iat"] == 7 * 24 * 3600


@pytest.mark.asyncio
async def test_tokens_are_unique(user, settings) -> None:
    assert generate_token(user, settings) != generate_token(user, settings)


@pytest.mark.asyncio
async def test_verify_token_rejects_bad_input(user, settings) -> None:
    token = generate_token(user, settings)
    other = settings.model_copy(update={"jwt_secret": "someone-else"})

    assert verify_token(token, other) is None
    assert verify_token("not-a-token", settings) is None
    assert verify_token("", settings) is None


@pytest.mark.asyncio
async def test_verify_token_rejects_expired(user, settings) -> None:
    issued_long_ago = datetime.now(timezone.utc) - timedelta(days=8)
    token = generate_token(user, settings, now=issued_long_ago)
    assert verify_token(token, settings) is None


# ── Session rows ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_verify_session_returns_user(db_session, user, settings) -> None:
    token = await _login(db_session, user, settings)

    current = await verify_session(db_session, token, settings)
    assert current is not None
    assert current.id == user.id
    assert current.email == "ana@example.com"
    assert current.is_verified is True


@pytest.mark.asyncio
async def test_signed_token_without_row_is_rejected(db_session, user, settings) -> None:
    token = generate_token(user, settings)
    assert await verify_session(db_session, token, settings) is None


@pytest.mark.asyncio
async def test_delete_session_revokes_and_is_idempotent(db_session, user, settings) -> None:
    token = await _login(db_session, user, settings)

    await delete_session(db_session, token)
    await delete_session(db_session, token)

    assert await verify_session(db_session, token, settings) is None
    assert verify_token(token, settings) is not None


@pytest.mark.asyncio
async def test_expired_row_is_removed_on_lookup(db_session, user, settings) -> None:
    token = await _login(
        db_session,
        user,
        settings,
        now=datetime.now(timezone.utc) - timedelta(days=2),
        expire_seconds=86_400,
    )
    assert await _session_count(db_session) == 1

    assert await verify_session(db_session, token, settings) is None
    assert await _session_count(db_session) == 0


@pytest.mark.asyncio
async def test_delete_user_sessions_can_keep_current(db_session, user, settings) -> None:
    current = await _login(db_session, user, settings)
    other_a = await _login(db_session, user, settings)
    other_b = await _login(db_session, user, settings)

    revoked = await delete_user_sessions(db_session, user.id, keep_token=current)
    assert revoked == 2
    assert await verify_session(db_session, current, settings) is not None
    assert await verify_session(db_session, other_a, settings) is None
    assert await verify_session(db_session, other_b, settings) is None

    assert await delete_user_sessions(db_session, user.id) == 1
    assert await _session_count(db_session) == 0


@pytest.mark.asyncio
async def test_cleanup_expired_sessions(db_session, user, settings) -> None:
    now = datetime.now(timezone.utc)
    await _login(db_session, user, settings, now=now - timedelta(days=10))
    live = await _login(db_session, user, settings, now=now)

    assert await cleanup_expired_sessions(db_session, now=now) == 1
    assert await verify_session(db_session, live, settings) is not None
