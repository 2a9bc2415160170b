"""Async SQLAlchemy engine and session management."""

from collections.abc import AsyncGenerator
from typing import Any

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from knowva.config import IN_MEMORY_DATABASE_URL, Settings
from knowva.db.base import Base

logger = structlog.get_logger()

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def resolve_database_url(settings: Settings) -> str:
    """Return the effective database URL, falling back to in-memory SQLite.

    Credentials from settings are injected only when the URL carries none.
    """
    if settings.uses_in_memory_database:
        return IN_MEMORY_DATABASE_URL

    url = make_url(settings.database_url)
    if url.username is None and settings.database_user:
        url = url.set(username=settings.database_user, password=settings.database_password or None)
    return url.render_as_string(hide_password=False)


async def init_db(settings: Settings) -> None:
    """Initialize the database engine and session factory."""
    global _engine, _session_factory  # noqa: PLW0603
    url = resolve_database_url(settings)

    engine_kwargs: dict[str, Any] = {"echo": False}
    if url.startswith("sqlite"):
        # One shared connection keeps the in-memory database alive across sessions
        engine_kwargs.update(
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine_kwargs.update(pool_size=3, max_overflow=10, pool_pre_ping=True)

    _engine = create_async_engine(url, **engine_kwargs)
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("database_initialized", dialect=_engine.dialect.name, in_memory=settings.uses_in_memory_database)


async def create_schema() -> None:
    """Create all tables that do not exist yet."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the database engine."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_engine() -> AsyncEngine:
    """Get the async engine instance."""
    if _engine is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _engine


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    if _session_factory is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    async with _session_factory() as session:
        yield session
