"""
Account Manager — pure business logic for user records.

Rules:
  - Zero FastAPI routing.  Errors are the shared HTTP exception types.
  - Only the AsyncSession passed in is touched; flush() so callers can use
    generated ids, the request dependency commits.
  - Empty-string identifiers are treated as absent everywhere.
"""
from __future__ import annotations

import logging
import uuid

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trueque_auth.auth.models import User
from trueque_auth.auth.utils import (
    hash_password,
    mask_identifier,
    normalize_email,
    normalize_phone,
    verify_password,
)
from trueque_auth.exceptions import (
    MissingIdentifier,
    NothingToUpdate,
    PhoneAlreadyExists,
    UserAlreadyExists,
    UserNotFound,
)
from trueque_auth.otp.service import clear_otps
from trueque_auth.sessions.service import delete_user_sessions

logger = logging.getLogger(__name__)

__all__ = [
    "create_user",
    "delete_user",
    "find_user",
    "get_user_by_id",
    "update_user",
    "verify_password",
]


# ── Queries ───────────────────────────────────────────────────────────────────

async def find_user(
    session: AsyncSession,
    email: str | None = None,
    phone: str | None = None,
) -> User | None:
    """Look a user up by email OR phone; None when neither is given."""
    email = normalize_email(email)
    phone = normalize_phone(phone)
    clauses = []
    if email:
        clauses.append(User.email == email)
    if phone:
        clauses.append(User.phone == phone)
    if not clauses:
        return None
    result = await session.execute(select(User).where(or_(*clauses)).limit(1))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: uuid.UUID) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


# ── Create ────────────────────────────────────────────────────────────────────

async def create_user(
    session: AsyncSession,
    *,
    name: str,
    email: str | None = None,
    phone: str | None = None,
    password: str | None = None,
) -> User:
    """
    Create a verified account.

    Verification is asserted by the caller, which must have consumed a
    registration OTP first.  Guard clauses run before the insert; the unique
    indexes settle the race when two registrations arrive at once.
    """
    email = normalize_email(email)
    phone = normalize_phone(phone)
    if not email and not phone:
        raise MissingIdentifier()

    if await find_user(session, email, phone) is not None:
        raise UserAlreadyExists()

    user = User(
        email=email,
        phone=phone,
        name=name.strip(),
        password_hash=hash_password(password) if password else None,
        is_verified=True,
    )
    session.add(user)
    try:
        await session.flush()
    except IntegrityError:
        # Lost the race to a concurrent insert; the transaction is unusable now.
        await session.rollback()
        raise UserAlreadyExists()
    logger.info("User created: %s", mask_identifier(email or phone))
    return user


# ── Update ────────────────────────────────────────────────────────────────────

async def update_user(
    session: AsyncSession,
    user_id: uuid.UUID,
    *,
    name: str | None = None,
    phone: str | None = None,
    password: str | None = None,
) -> User:
    """Patch the provided fields; at least one is required."""
    phone = normalize_phone(phone)
    name = name.strip() if name else None
    if not (name or phone or password):
        raise NothingToUpdate()

    user = await get_user_by_id(session, user_id)
    if user is None:
        raise UserNotFound()

    if phone and phone != user.phone:
        taken = await session.execute(
            select(User.id).where(User.phone == phone, User.id != user_id)
        )
        if taken.first() is not None:
            raise PhoneAlreadyExists()
        user.phone = phone
    if name:
        user.name = name
    if password:
        user.password_hash = hash_password(password)

    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise PhoneAlreadyExists()
    return user


# ── Delete ────────────────────────────────────────────────────────────────────

async def delete_user(session: AsyncSession, user_id: uuid.UUID) -> None:
    """
    Remove the user with its sessions and OTP records.

    Order: sessions, OTPs, user.  All three statements share the caller's
    transaction, so a failure midway leaves nothing orphaned.
    """
    user = await get_user_by_id(session, user_id)
    if user is None:
        return

    await delete_user_sessions(session, user_id)
    await clear_otps(session, email=user.email, phone=user.phone)
    await session.execute(delete(User).where(User.id == user_id))
    logger.info("User %s deleted", user_id)
