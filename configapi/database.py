"""Database handles and session management.

Two databases are involved: the configuration database (read-write) and the
MojoPortal user directory (read-only). Each gets its own ``Database`` handle,
constructed in the application lifespan and stored on ``app.state``.
Single-database deployments and tests simply point both at the same URL.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Request
from sqlalchemy import MetaData, event, text
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

# Configuration tables (config_overrides, file_specs, ...)
Base = declarative_base()

# MojoPortal directory tables (mp_users, mp_roles, ...). Never written.
DirectoryBase = declarative_base()


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"))


class Database:
    """Explicitly constructed handle around an ``AsyncEngine`` and its session factory."""

    def __init__(
        self,
        url: str,
        pool_size: int = 10,
        max_overflow: int = 0,
        pool_timeout: int = 30,
        pool_recycle: int = 300,
        name: str = "config",
    ):
        self.url = url
        self.name = name

        engine_kwargs: dict[str, Any] = {}
        if url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(url):
                # One shared connection, otherwise every session sees an empty database.
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_timeout=pool_timeout,
                pool_recycle=pool_recycle,
                # Detects stale connections before use.
                pool_pre_ping=True,
            )

        self.engine = create_async_engine(url, **engine_kwargs)

        if url.startswith("sqlite"):
            @event.listens_for(self.engine.sync_engine, "connect")
            def _set_sqlite_pragma(dbapi_connection, connection_record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings, url: str, name: str = "config") -> "Database":
        return cls(
            url,
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_recycle=settings.db_pool_recycle,
            name=name,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session, rolling back on unhandled exceptions.

        Pool exhaustion is reported as ``StorageUnavailableError`` so the
        caller sees a 503 instead of a generic 500.
        """
        async with self.session_factory() as session:
            try:
                yield session
            except PoolTimeoutError as e:
                await session.rollback()
                logger.error(
                    "Database pool exhausted",
                    extra={"database": self.name, "error": str(e)},
                )
                raise StorageUnavailableError() from e
            except Exception:
                await session.rollback()
                raise

    async def create_all(self, *metadatas: MetaData) -> None:
        async with self.engine.begin() as conn:
            for metadata in metadatas:
                await conn.run_sync(metadata.create_all)

    async def ping(self) -> bool:
        """Run ``SELECT 1``. Returns False instead of raising."""
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(
                "Database ping failed",
                extra={"database": self.name, "error": str(e)},
            )
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for FastAPI routes to get a configuration database session."""
    database: Database = request.app.state.config_db
    async with database.session() as session:
        yield session


async def get_directory_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency for FastAPI routes to get a read-only directory session."""
    database: Database = request.app.state.directory_db
    async with database.session() as session:
        yield session
