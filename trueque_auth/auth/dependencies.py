"""
Auth service — FastAPI dependencies for bearer-token authentication.

The token is checked twice: signature/expiry (no I/O), then the session row.
A token whose row was deleted by logout is rejected even though its
signature is still valid.
"""
from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from trueque_auth.config import Settings, get_settings
from trueque_auth.database import get_db
from trueque_auth.exceptions import NotAuthenticated
from trueque_auth.sessions.service import verify_session
from trueque_common.models.user import CurrentUser

http_bearer = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
) -> str:
    if not credentials or not credentials.credentials:
        raise NotAuthenticated()
    return credentials.credentials


async def get_current_user(
    token: str = Depends(get_bearer_token),
    session: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> CurrentUser:
    user = await verify_session(session, token, settings)
    if user is None:
        # keep the expired-row eviction; get_db rolls back once we raise
        await session.commit()
        raise NotAuthenticated()
    return user
