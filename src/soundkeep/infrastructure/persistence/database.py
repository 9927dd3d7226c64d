"""Database engine and session management.

Hey future me - the job table IS the queue, and on SQLite several processes (API + N workers)
hammer the same file. Every connection gets WAL + busy_timeout so the claim UPDATE waits for
the write lock instead of bubbling up "database is locked" on the first collision.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from soundkeep.config import Settings

logger = logging.getLogger(__name__)


class Database:
    """Owns the async engine and hands out sessions."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        db = settings.database
        self.is_sqlite = db.url.startswith("sqlite")

        engine_kwargs: dict[str, Any] = {
            "echo": db.echo,
            "pool_pre_ping": db.pool_pre_ping,
        }
        if self.is_sqlite:
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": db.sqlite_busy_timeout_seconds,
            }
        else:
            # Pool knobs only mean something for server databases
            engine_kwargs.update(
                pool_size=db.pool_size,
                max_overflow=db.max_overflow,
                pool_timeout=db.pool_timeout,
                pool_recycle=db.pool_recycle,
            )

        self._engine = create_async_engine(db.url, **engine_kwargs)
        if self.is_sqlite:
            self._install_sqlite_pragmas()

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Session factory for components that manage their own short transactions."""
        return self._session_factory

    def _install_sqlite_pragmas(self) -> None:
        db = self.settings.database
        busy_timeout_ms = db.sqlite_busy_timeout_seconds * 1000

        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute(f"PRAGMA busy_timeout={busy_timeout_ms}")
            if db.sqlite_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Transactional scope: commit on success, rollback and re-raise on error."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._engine.dispose()

    async def create_tables(self) -> None:
        """Create all tables (dev setups and tests; production runs alembic)."""
        from soundkeep.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
