from __future__ import annotations

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from brokerwatch.config import Settings, get_settings

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_engine(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Initialise SQLAlchemy engine lazily with connection pooling."""

    global _engine, _session_factory

    cfg = settings or get_settings()
    if _session_factory is not None:
        return _session_factory

    pool_options = {}
    if not cfg.database_url.startswith("sqlite"):
        pool_options = {
            "pool_size": cfg.db_pool_size,
            "max_overflow": cfg.db_max_overflow,
            "pool_timeout": cfg.db_pool_timeout,
            "pool_recycle": cfg.db_pool_recycle,
        }

    _engine = create_async_engine(
        cfg.database_url,
        echo=cfg.debug,
        pool_pre_ping=True,
        **pool_options,
    )
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def get_session() -> AsyncIterator[AsyncSession]:
    """Yield an async database session."""

    factory = _session_factory or init_engine()
    async with factory() as session:
        yield session


async def dispose_engine() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
