"""
Session Manager — signed tokens plus server-side session rows.

Two independent expiry mechanisms must both pass for a session to be live:
  1. the JWT ``exp`` claim (checked without touching the database), and
  2. the ``auth_sessions`` row, which is the only revocation authority.
Logout deletes the row, so a token whose signature is still valid stops
working immediately.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from trueque_auth.auth.constants import SESSION_EXPIRE_SECONDS
from trueque_auth.auth.models import AuthSession, User
from trueque_auth.config import Settings
from trueque_common.models.user import CurrentUser

logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


# ── Signed token ──────────────────────────────────────────────────────────────

def generate_token(user: User, settings: Settings, *, now: datetime | None = None) -> str:
    now = _now(now)
    payload = {
        "sub": str(user.id),
        "userId": str(user.id),
        "email": user.email,
        "name": user.name,
        "isVerified": user.is_verified,
        "iat": now,
        "exp": now + timedelta(seconds=settings.session_expire_seconds),
        # tokens double as unique session keys, even when issued in the same second
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Settings) -> dict[str, Any] | None:
    """Return the claims, or None for a bad signature, expired token or garbage input."""
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


# ── Session rows ──────────────────────────────────────────────────────────────

async def create_session(
    session: AsyncSession,
    *,
    user_id: uuid.UUID,
    token: str,
    expire_seconds: int = SESSION_EXPIRE_SECONDS,
    now: datetime | None = None,
) -> AuthSession:
    now = _now(now)
    auth_session = AuthSession(
        user_id=user_id,
        token=token,
        expires_at=now + timedelta(seconds=expire_seconds),
        created_at=now,
    )
    session.add(auth_session)
    await session.flush()
    logger.debug("Session created for user %s", user_id)
    return auth_session


async def verify_session(
    session: AsyncSession,
    token: str,
    settings: Settings,
    *,
    now: datetime | None = None,
) -> CurrentUser | None:
    """
    Resolve a bearer token to its user, or None.

    A row that exists but has expired is removed on the spot.
    """
    if not token or verify_token(token, settings) is None:
        return None

    now = _now(now)
    result = await session.execute(
        select(User)
        .join(AuthSession, AuthSession.user_id == User.id)
        .where(AuthSession.token == token, AuthSession.expires_at > now)
    )
    user = result.scalar_one_or_none()
    if user is None:
        await session.execute(
            delete(AuthSession).where(
                AuthSession.token == token,
                AuthSession.expires_at <= now,
            )
        )
        return None
    return CurrentUser.model_validate(user)


async def delete_session(session: AsyncSession, token: str) -> None:
    """Remove a session row.  Deleting an unknown token is not an error."""
    await session.execute(delete(AuthSession).where(AuthSession.token == token))
    logger.debug("Session deleted")


async def delete_user_sessions(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    keep_token: str | None = None,
) -> int:
    """Revoke every session of a user, optionally sparing the caller's own."""
    stmt = delete(AuthSession).where(AuthSession.user_id == user_id)
    if keep_token is not None:
        stmt = stmt.where(AuthSession.token != keep_token)
    result = await session.execute(stmt)
    return result.rowcount or 0


async def cleanup_expired_sessions(session: AsyncSession, *, now: datetime | None = None) -> int:
    result = await session.execute(
        delete(AuthSession).where(AuthSession.expires_at < _now(now))
    )
    return result.rowcount or 0
