"""SQLite database holding one row per chat channel."""

from sqlalchemy import URL, event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

# Watermark saves from the poller and command writes share the file
_PRAGMAS = ("PRAGMA journal_mode=WAL", "PRAGMA busy_timeout=5000")


def _apply_pragmas(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    for pragma in _PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


async def init_db(db_path: str) -> None:
    """Open ``db_path`` and create the channel table if it is missing."""
    global _engine, _session_factory

    _engine = create_async_engine(URL.create("sqlite+aiosqlite", database=db_path))
    event.listen(_engine.sync_engine, "connect", _apply_pragmas)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)

    from nitterwatch.db.models import Base

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def get_session() -> AsyncSession:
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory()


async def close_db() -> None:
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
