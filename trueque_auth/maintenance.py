"""
Periodic cleanup of expired OTP records and sessions.

Started from the app lifespan as an asyncio task.  Each pass runs in its own
session; a failing pass is logged and the loop carries on at the next tick.
"""
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trueque_auth.otp.service import cleanup_expired_otps
from trueque_auth.sessions.service import cleanup_expired_sessions

logger = logging.getLogger(__name__)


async def run_cleanup_pass(session_factory: async_sessionmaker[AsyncSession]) -> tuple[int, int]:
    """Return (otps_removed, sessions_removed); (0, 0) when the pass failed."""
    try:
        async with session_factory() as session:
            otps = await cleanup_expired_otps(session)
            sessions = await cleanup_expired_sessions(session)
            await session.commit()
    except Exception:
        logger.exception("Cleanup pass failed")
        return 0, 0

    if otps or sessions:
        logger.info("Cleanup removed %d expired OTP(s) and %d expired session(s)", otps, sessions)
    return otps, sessions


async def run_periodic_cleanup(
    session_factory: async_sessionmaker[AsyncSession],
    interval_seconds: int,
) -> None:
    while True:
        await run_cleanup_pass(session_factory)
        await asyncio.sleep(interval_seconds)
