"""
Database engine, sessions and query helpers for AI Job Master.

SQLite (aiosqlite) is the default for local runs and tests; PostgreSQL
(asyncpg) in production. Plain ``postgres://`` or ``sqlite://`` URLs from the
environment are rewritten to their async drivers.

All timestamps are stored as naive UTC, see ``utcnow``.
"""

import logging
import math
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, Optional

from sqlalchemy import MetaData, event, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

_ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "postgres://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def utcnow() -> datetime:
    """Current UTC time as a naive datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def async_database_url(url: str) -> str:
    for prefix, async_prefix in _ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return async_prefix + url[len(prefix):]
    return url


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def engine_options(url: str) -> Dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` for the given backend."""
    options: Dict[str, Any] = {"echo": settings.database_echo, "pool_pre_ping": True}
    if is_sqlite(url):
        options.update(poolclass=NullPool, connect_args={"check_same_thread": False})
    else:
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
            pool_recycle=settings.database_pool_recycle,
        )
    return options


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class DatabaseManager:
    """Owns the process-wide engine and session factory."""

    def __init__(self, url: Optional[str] = None):
        self.url = async_database_url(url or settings.database_url)
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._engine

    @property
    def sessionmaker(self) -> async_sessionmaker:
        if self._sessionmaker is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._sessionmaker

    async def initialize(self) -> None:
        if self.is_initialized:
            logger.warning("Database already initialized")
            return

        engine = create_async_engine(self.url, **engine_options(self.url))
        if is_sqlite(self.url):
            enable_sqlite_foreign_keys(engine)

        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            await engine.dispose()
            logger.error(f"Cannot connect to database: {e}")
            raise

        self._engine = engine
        self._sessionmaker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        logger.info(f"Database initialized ({self.url.split('://', 1)[0]})")

    async def create_all_tables(self) -> None:
        import app.models  # noqa: F401  registers every table on Base.metadata

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Ensured {len(Base.metadata.tables)} tables exist")

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("Database connections closed")

    async def check_health(self) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            async with self.sessionmaker() as session:
                await session.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            return {"status": "unhealthy", "error": str(e), "response_time": time.perf_counter() - start}
        return {"status": "healthy", "response_time": time.perf_counter() - start}


db_manager = DatabaseManager()


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Session that commits on clean exit and rolls back on a database error.

    The CLI scripts use it directly; ``get_db`` wraps it for request handlers.
    """
    async with db_manager.sessionmaker() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed when the handler returns."""
    async with get_db_session() as session:
        yield session


async def init_db() -> None:
    await db_manager.initialize()
    await db_manager.create_all_tables()


async def close_db() -> None:
    await db_manager.close()


async def check_db_health() -> Dict[str, Any]:
    if not db_manager.is_initialized:
        return {"status": "unhealthy", "error": "Database not initialized"}
    return await db_manager.check_health()


def paginate_query(query, page: int = 1, page_size: int = 20):
    """Apply OFFSET/LIMIT for a 1-based page."""
    return query.offset((max(page, 1) - 1) * page_size).limit(page_size)


async def count_query_results(session: AsyncSession, query) -> int:
    """Row count of a select, ignoring its ORDER BY."""
    result = await session.execute(select(func.count()).select_from(query.order_by(None).subquery()))
    return result.scalar_one()


def pagination_info(page: int, limit: int, total_count: int) -> Dict[str, int]:
    """Pagination block returned by list endpoints."""
    return {
        "page": page,
        "limit": limit,
        "totalCount": total_count,
        "totalPages": math.ceil(total_count / limit) if limit else 0,
    }
