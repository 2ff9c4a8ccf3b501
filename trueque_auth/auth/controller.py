"""
Auth service — auth controller (request orchestration layer).

Responsibilities:
  - Receive validated input from the router.
  - Call the OTP, session and account services (which own business logic).
  - Turn failed verification results into the matching HTTP exceptions.
  - Compose and return the response model.

No framework validation logic here — that belongs in schemas.py.
"""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from trueque_auth.auth.constants import OTPPurpose
from trueque_auth.auth.models import User
from trueque_auth.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UserEnvelope,
    UserResponse,
)
from trueque_auth.auth.service import (
    create_user,
    delete_user,
    find_user,
    get_user_by_id,
    update_user,
    verify_password,
)
from trueque_auth.config import Settings
from trueque_auth.exceptions import (
    IncorrectPassword,
    InvalidCredentials,
    InvalidOTP,
    NotAuthenticated,
    PasswordRequired,
    UserNotFound,
)
from trueque_auth.otp.service import verify_otp
from trueque_auth.sessions.service import (
    create_session,
    delete_session,
    delete_user_sessions,
    generate_token,
)
from trueque_common.models.user import CurrentUser

logger = logging.getLogger(__name__)


# ── Helper ────────────────────────────────────────────────────────────────────

async def issue_session(session: AsyncSession, user: User, settings: Settings) -> AuthResponse:
    token = generate_token(user, settings)
    await create_session(
        session,
        user_id=user.id,
        token=token,
        expire_seconds=settings.session_expire_seconds,
    )
    return AuthResponse(user=UserResponse.from_user(user), token=token)


async def _consume_otp(
    session: AsyncSession,
    *,
    email: str | None,
    phone: str | None,
    code: str,
    purpose: OTPPurpose,
) -> None:
    result = await verify_otp(session, email=email, phone=phone, code=code, purpose=purpose)
    if not result.valid:
        raise InvalidOTP(result.message)


# ── Register ──────────────────────────────────────────────────────────────────

async def register(
    session: AsyncSession,
    body: RegisterRequest,
    settings: Settings,
) -> AuthResponse:
    """Registration is OTP-only: the account starts verified and without a password."""
    email, phone = body.channel_identifiers
    await _consume_otp(
        session,
        email=email,
        phone=phone,
        code=body.otp_code,
        purpose=OTPPurpose.REGISTER,
    )
    user = await create_user(session, name=body.name, email=body.email, phone=body.phone)
    return await issue_session(session, user, settings)


# ── Login ─────────────────────────────────────────────────────────────────────

async def login(
    session: AsyncSession,
    body: LoginRequest,
    settings: Settings,
) -> AuthResponse:
    email, phone = body.channel_identifiers
    user = await find_user(session, email, phone)
    if user is None:
        raise InvalidCredentials()

    # Password-protected accounts need both factors; OTP-only accounts skip this.
    if body.password:
        if not verify_password(body.password, user.password_hash):
            raise InvalidCredentials()
    elif user.password_hash:
        raise PasswordRequired()

    await _consume_otp(
        session,
        email=email,
        phone=phone,
        code=body.otp_code,
        purpose=OTPPurpose.LOGIN,
    )
    return await issue_session(session, user, settings)


# ── Logout ────────────────────────────────────────────────────────────────────

async def logout(session: AsyncSession, token: str) -> MessageResponse:
    await delete_session(session, token)
    return MessageResponse(message="Signed out successfully.")


# ── Current user ──────────────────────────────────────────────────────────────

def me(current_user: CurrentUser) -> UserEnvelope:
    return UserEnvelope(user=UserResponse.from_user(current_user))


async def update_profile(
    session: AsyncSession,
    current_user: CurrentUser,
    body: UpdateProfileRequest,
) -> UserEnvelope:
    user = await update_user(session, current_user.id, name=body.name, phone=body.phone)
    return UserEnvelope(user=UserResponse.from_user(user))


# ── Passwords ─────────────────────────────────────────────────────────────────

async def change_password(
    session: AsyncSession,
    current_user: CurrentUser,
    token: str,
    body: ChangePasswordRequest,
) -> MessageResponse:
    """Set a new password and sign out every other device."""
    user = await get_user_by_id(session, current_user.id)
    if user is None:
        raise NotAuthenticated()
    if not verify_password(body.current_password, user.password_hash):
        raise IncorrectPassword()

    await update_user(session, user.id, password=body.new_password)
    revoked = await delete_user_sessions(session, user.id, keep_token=token)
    logger.info("Password changed for user %s; %d other session(s) revoked", user.id, revoked)
    return MessageResponse(message="Password updated successfully.")


async def reset_password(session: AsyncSession, body: ResetPasswordRequest) -> MessageResponse:
    """Forgotten-password flow: an OTP with purpose=reset replaces the current password."""
    email, phone = body.channel_identifiers
    user = await find_user(session, email, phone)
    if user is None:
        raise UserNotFound()

    await _consume_otp(
        session,
        email=email,
        phone=phone,
        code=body.otp_code,
        purpose=OTPPurpose.RESET,
    )
    await update_user(session, user.id, password=body.new_password)
    revoked = await delete_user_sessions(session, user.id)
    logger.info("Password reset for user %s; %d session(s) revoked", user.id, revoked)
    return MessageResponse(message="Password has been reset. Please sign in again.")


# ── Account ───────────────────────────────────────────────────────────────────

async def delete_account(session: AsyncSession, current_user: CurrentUser) -> MessageResponse:
    await delete_user(session, current_user.id)
    return MessageResponse(message="Account deleted.")
