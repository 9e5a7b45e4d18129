"""Async SQLAlchemy engine and session factory over a single SQLite connection."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

logger = logging.getLogger(__name__)

_MEMORY = ":memory:"


def _set_sqlite_pragmas(dbapi_conn, _record, *, file_backed: bool) -> None:
    cursor = dbapi_conn.cursor()
    if file_backed:
        cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA cache_size=2000")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Owns the engine for the shop database.

    The pool holds exactly one connection; concurrent sessions queue on it
    instead of opening more, so every statement is serialized.
    """

    def __init__(self, path: str, echo: bool = False):
        self.path = path
        file_backed = path != _MEMORY

        if file_backed:
            Path(path).parent.mkdir(parents=True, exist_ok=True)
            url = f"sqlite+aiosqlite:///{path}"
        else:
            # private named in-memory db; lives as long as the pooled connection
            url = f"sqlite+aiosqlite:///file:bikeshop-{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"

        self.engine: AsyncEngine = create_async_engine(
            url, echo=echo, poolclass=AsyncAdaptedQueuePool,
            pool_size=1, max_overflow=0, pool_timeout=30,
        )

        event.listen(
            self.engine.sync_engine,
            "connect",
            lambda conn, rec: _set_sqlite_pragmas(conn, rec, file_backed=file_backed),
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        from bikeshop.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database ready at %s", self.path)

    async def dispose(self) -> None:
        await self.engine.dispose()
