import os

# Configure before any trueque_auth import: get_settings() and the limiter are module-level.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["ENV_NAME"] = "development"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["CLEANUP_ENABLED"] = "false"

from collections.abc import AsyncGenerator
from dataclasses import dataclass

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from trueque_auth.auth.constants import OTPChannel, OTPPurpose
from trueque_auth.auth.models import AuthSession, OTPRecord, User  # noqa: F401 - register with Base
from trueque_auth.config import Settings, get_settings
from trueque_auth.database import get_db
from trueque_auth.exceptions import DeliveryError
from trueque_auth.main import create_app
from trueque_auth.notifications import NotificationGateway, get_gateway
from trueque_common.database import Base

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@dataclass
class SentCode:
    channel: OTPChannel
    destination: str
    code: str
    purpose: OTPPurpose


class RecordingGateway(NotificationGateway):
    """Keeps every code instead of delivering it; ``fail`` simulates a provider outage."""

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.sent: list[SentCode] = []
        self.fail = False

    async def send_code(self, channel, destination, code, purpose) -> None:
        if self.fail:
            raise DeliveryError()
        self.sent.append(SentCode(channel, destination, code, purpose))

    @property
    def last_code(self) -> str:
        return self.sent[-1].code


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def gateway(settings: Settings) -> RecordingGateway:
    return RecordingGateway(settings)


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def app(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    gateway: RecordingGateway,
) -> FastAPI:
    app = create_app(settings)

    async def _get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_gateway] = lambda: gateway
    return app


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
