"""
Platera Backend — Database Handle
=================================

What:  Async SQLAlchemy engine + session factory wrapped in a `Database` handle,
       the declarative `Base`, and the per-request session dependency.
How:   `create_app()` constructs one `Database` per process and stores it on
       `app.state.database`; handlers receive sessions through `get_db_session`.
       Sessions commit on success and roll back on any error.
Who:   Route dependencies, the application lifespan, Alembic and tests.

SQLite (tests, local tooling):
    pysqlite defers BEGIN until the first DML statement, which makes SAVEPOINT
    non-transactional. For SQLite URLs the driver's implicit transaction
    handling is disabled and BEGIN is emitted explicitly, and foreign keys are
    switched on so ON DELETE CASCADE and FK checks match PostgreSQL.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Optional

from fastapi import Request
from sqlalchemy import event, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from platera.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models; its metadata drives Alembic."""


def _configure_sqlite(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, settings: Optional[Settings] = None) -> AsyncEngine:
    """
    Create the async engine for `database_url`.

    PostgreSQL gets a sized connection pool from settings. SQLite gets the
    transaction fixes above, and in-memory SQLite a StaticPool so every
    session shares the one connection holding the schema.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        kwargs = {}
        if url.database in (None, "", ":memory:"):
            kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
        engine = create_async_engine(database_url, **kwargs)
        _configure_sqlite(engine)
        return engine

    pool_kwargs = {}
    if settings is not None:
        pool_kwargs = {
            "pool_size": settings.db_pool_size,
            "max_overflow": settings.db_max_overflow,
            "pool_pre_ping": settings.db_pool_pre_ping,
            "echo": settings.log_level == "DEBUG",
        }
    return create_async_engine(database_url, pool_recycle=3600, **pool_kwargs)


class Database:
    """
    Process-scoped store handle.

    Lifecycle:
        1. Constructed once by the application factory (or a test fixture)
        2. `session()` hands out one AsyncSession per request
        3. `dispose()` closes the pool on shutdown
    """

    def __init__(self, database_url: str, settings: Optional[Settings] = None):
        self.url = database_url
        self.engine = build_engine(database_url, settings)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(settings.database_url, settings)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """
        Yield a session that commits on success and rolls back on error.

        Any exception raised by the consumer is re-raised after rollback so the
        global error handlers can respond.
        """
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        """Create every table from model metadata (tests and local tooling)."""
        import platera.models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed: %s", str(e))
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


# ── Request dependencies ──────────────────────────────────────────────────

def get_database(request: Request) -> Database:
    """The handle stored on the application by `create_app()`."""
    return request.app.state.database


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency providing one transactional session per request.

    Example:
        @router.get("/recipes")
        async def list_recipes(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    database = get_database(request)
    async with database.session() as session:
        yield session
