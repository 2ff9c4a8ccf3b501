"""
Auth service — account router.

Only HTTP concerns live here:
  - Route declarations, HTTP methods, status codes, response_model
  - Dependency injection (session, settings, current user, bearer token)
  - Forwarding to the controller

Zero business logic. Zero DB queries.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from trueque_auth.auth.controller import (
    change_password as change_password_controller,
    delete_account as delete_account_controller,
    login as login_controller,
    logout as logout_controller,
    me as me_controller,
    register as register_controller,
    reset_password as reset_password_controller,
    update_profile as update_profile_controller,
)
from trueque_auth.auth.dependencies import get_bearer_token, get_current_user
from trueque_auth.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UpdateProfileRequest,
    UserEnvelope,
)
from trueque_auth.config import Settings, get_settings
from trueque_auth.database import get_db
from trueque_auth.rate_limit import AUTH_LIMIT, limiter
from trueque_common.models.user import CurrentUser

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Register / Login ──────────────────────────────────────────────────────────

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an account with a registration OTP",
)
@limiter.limit(AUTH_LIMIT)
async def register(
    request: Request,
    body: RegisterRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    return await register_controller(session, body, settings)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Sign in with a login OTP (plus password when the account has one)",
)
@limiter.limit(AUTH_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AuthResponse:
    return await login_controller(session, body, settings)


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Revoke the current session",
)
async def logout(
    _: CurrentUser = Depends(get_current_user),
    token: str = Depends(get_bearer_token),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    return await logout_controller(session, token)


# ── Current user ──────────────────────────────────────────────────────────────

@router.get(
    "/me",
    response_model=UserEnvelope,
    summary="Get the authenticated user",
)
async def me(current_user: CurrentUser = Depends(get_current_user)) -> UserEnvelope:
    return me_controller(current_user)


@router.put(
    "/profile",
    response_model=UserEnvelope,
    summary="Update name and/or phone",
)
async def update_profile(
    body: UpdateProfileRequest,
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> UserEnvelope:
    return await update_profile_controller(session, current_user, body)


# ── Passwords ─────────────────────────────────────────────────────────────────

@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change password (signs out other sessions)",
)
async def change_password(
    body: ChangePasswordRequest,
    current_user: CurrentUser = Depends(get_current_user),
    token: str = Depends(get_bearer_token),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    return await change_password_controller(session, current_user, token, body)


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Set a new password with a reset OTP (signs out all sessions)",
)
@limiter.limit(AUTH_LIMIT)
async def reset_password(
    request: Request,
    body: ResetPasswordRequest,
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    return await reset_password_controller(session, body)


# ── Account ───────────────────────────────────────────────────────────────────

@router.delete(
    "/account",
    response_model=MessageResponse,
    summary="Delete the account, its sessions and its OTP records",
)
async def delete_account(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    return await delete_account_controller(session, current_user)
