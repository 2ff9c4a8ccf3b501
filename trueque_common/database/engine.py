import os
import ssl
from pathlib import Path
from typing import Any

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

# Index and key names stay stable between create_all and the Alembic revisions.
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))

AsyncSessionFactory = async_sessionmaker[AsyncSession]


def _ssl_connect_args(mode: str, cert_path: str) -> dict[str, Any]:
    """
    asyncpg ``connect_args`` for DATABASE_SSL.

    ``disable`` or unset: plain TCP.  ``verify``: the CA bundle in
    DATABASE_SSL_CERT must exist.  Anything else: encrypted, unverified.
    """
    mode = mode.lower()
    if mode in ("", "disable"):
        return {}
    if mode == "verify" or (cert_path and Path(cert_path).exists()):
        return {"ssl": ssl.create_default_context(cafile=cert_path or None)}
    return {"ssl": "require"}


def get_async_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    # SQLite (local runs, tests) has no server-side pool to size and no TLS.
    if make_url(database_url).get_backend_name() == "sqlite":
        return create_async_engine(database_url, **kwargs)

    options: dict[str, Any] = {
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_size": int(os.environ.get("DATABASE_POOL_SIZE", "5")),
        "max_overflow": int(os.environ.get("DATABASE_MAX_OVERFLOW", "10")),
    }
    connect_args = _ssl_connect_args(
        os.environ.get("DATABASE_SSL", ""),
        os.environ.get("DATABASE_SSL_CERT", ""),
    )
    if connect_args:
        options["connect_args"] = connect_args
    options.update(kwargs)
    return create_async_engine(database_url, **options)


def get_async_session_factory(
    database_url: str,
    *,
    expire_on_commit: bool = False,
    **engine_kwargs: Any,
) -> AsyncSessionFactory:
    return async_sessionmaker(
        get_async_engine(database_url, **engine_kwargs),
        class_=AsyncSession,
        expire_on_commit=expire_on_commit,
        autoflush=False,
    )
