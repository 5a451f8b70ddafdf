"""Async engine and session scope shared by the SQL repositories."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backstage.config import Settings
from backstage.config.settings import DatabaseSettings

logger = logging.getLogger(__name__)


def _engine_options(db: DatabaseSettings) -> dict[str, Any]:
    url = make_url(db.url)
    options: dict[str, Any] = {"echo": db.echo, "pool_pre_ping": db.pool_pre_ping}

    if url.get_backend_name() == "sqlite":
        # aiosqlite waits up to 30s for the write lock before "database is locked"
        options["connect_args"] = {"check_same_thread": False, "timeout": 30}
        # An in-memory database only exists on its one connection
        if url.database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool
    else:
        options.update(
            pool_size=db.pool_size,
            max_overflow=db.max_overflow,
            pool_timeout=db.pool_timeout,
            pool_recycle=db.pool_recycle,
        )
    return options


class Database:
    """Owns the engine; repositories borrow short sessions via session_scope()."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._engine = create_async_engine(
            settings.database.url, **_engine_options(settings.database)
        )
        if self._engine.dialect.name == "sqlite":
            # ON DELETE CASCADE from users to contacts/notified_releases needs this per connection
            event.listen(self._engine.sync_engine, "connect", _sqlite_foreign_keys_on)

        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Commit on clean exit, roll back and re-raise otherwise."""
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        """Readiness check: can we run SELECT 1?"""
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception as e:
            logger.warning("Database ping failed: %s", e)
            return False
        return True

    async def create_tables(self) -> None:
        """Create the schema from the ORM models. Tests only, deployments run Alembic."""
        from backstage.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()


def _sqlite_foreign_keys_on(dbapi_conn: Any, _connection_record: Any) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


__all__ = ["Database"]
