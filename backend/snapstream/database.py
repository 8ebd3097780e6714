"""
SnapStream Backend — Database Handle & Session Management
===========================================================

What:  The `Database` storage-access handle (async engine + session factory),
       the declarative `Base`, and the per-request session dependency.
How:   One `Database` is constructed at startup, stored on `app.state`, shared
       by request handlers and the expiry reaper, and disposed at shutdown.
       There is no module-level engine.
Who:   main.py (lifespan), routes via Depends(get_db_session), the reaper,
       Alembic (Base.metadata), and tests (which build their own handle).

Connection Pooling (PostgreSQL):
    pool_size=20, max_overflow=10, pool_pre_ping, pool_recycle=3600.
    SQLite (tests, local runs) keeps SQLAlchemy's default pool and gets
    `PRAGMA foreign_keys=ON` on every connection so ON DELETE CASCADE holds.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from snapstream.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models register with this metadata, which Alembic reads for
    --autogenerate and tests use for create_all().
    """
    pass


def _on_sqlite_connect(dbapi_connection, connection_record) -> None:
    # Foreign keys are off per connection by default; the driver's own
    # transaction handling is disabled so SAVEPOINTs nest correctly
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
    dbapi_connection.isolation_level = None


def _on_sqlite_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


class Database:
    """
    Explicitly constructed storage-access handle.

    Lifetime:
        Created in the application lifespan (or by a test fixture), shared
        through `app.state.database`, released with `dispose()`.

    Attributes:
        engine:           AsyncEngine owning the connection pool
        session_factory:  async_sessionmaker producing AsyncSession objects
                          (expire_on_commit=False so ORM objects stay readable
                          after commit)
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 20,
        max_overflow: int = 10,
        pool_pre_ping: bool = True,
    ):
        engine_kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": pool_pre_ping}
        if not url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_recycle=3600,
            )

        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **engine_kwargs)

        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _on_sqlite_connect)
            event.listen(self.engine.sync_engine, "begin", _on_sqlite_begin)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.database_url,
            echo=settings.log_level == "DEBUG",
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=settings.db_pool_pre_ping,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Unit-of-work scope: commit on success, roll back on any error, always close.

        Services that need the commit to happen at a precise point (the snap
        upload, so that the live broadcast follows the commit) commit
        explicitly; the trailing commit here is then a no-op.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create every table registered on Base.metadata (tests and local dev)."""
        # Imported for their side effect of registering tables on Base.metadata
        from snapstream.models import snap, user  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        """Run SELECT 1; returns False instead of raising when the database is unreachable."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()
        logger.info("Database engine disposed")


# ── Request-Scoped Dependencies ───────────────────────────────────────────

def get_database(request: Request) -> Database:
    """FastAPI dependency returning the handle installed on app.state."""
    database: Optional[Database] = getattr(request.app.state, "database", None)
    if database is None:
        raise RuntimeError("Database handle is not initialised on app.state")
    return database


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    Example usage in a route:
        @router.get("/api/feed")
        async def get_feed(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    database = get_database(request)
    async with database.session() as session:
        yield session
