"""
Engines, sessions and health checks for the invoice store.

PostgreSQL in deployment (psycopg for DDL and migrations, asyncpg for
requests); a shared SQLite file when TESTING=true so the sync schema fixtures
and the async request sessions see the same rows.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from ..models.database import Base


logger = logging.getLogger(__name__)

SQLITE_TEST_URL = "sqlite:///./test.db"
SLOW_QUERY_SECONDS = 0.1

_ASYNC_DRIVERS = {
    "postgresql+psycopg://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite:///": "sqlite+aiosqlite:///",
}


def _testing() -> bool:
    return os.getenv("TESTING", "false").lower() == "true"


def _postgres_url_from_parts() -> str:
    return "postgresql+psycopg://{user}:{password}@{host}:{port}/{name}".format(
        user=os.getenv("DB_USER", "postgres"),
        password=os.getenv("DB_PASSWORD", "postgres"),
        host=os.getenv("DB_HOST", "localhost"),
        port=os.getenv("DB_PORT", "5432"),
        name=os.getenv("DB_NAME", "swift_invoice"),
    )


def to_async_url(url: str) -> str:
    """Swap a sync driver prefix for its async counterpart; unknown prefixes pass through."""
    for sync_prefix, async_prefix in _ASYNC_DRIVERS.items():
        if url.startswith(sync_prefix):
            return async_prefix + url[len(sync_prefix):]
    return url


class DatabaseConfig:
    """Connection settings read once from the environment."""

    def __init__(self):
        if _testing():
            self.database_url = SQLITE_TEST_URL
            self.async_database_url = to_async_url(SQLITE_TEST_URL)
        else:
            self.database_url = os.getenv("DATABASE_URL") or _postgres_url_from_parts()
            self.async_database_url = os.getenv("ASYNC_DATABASE_URL") or to_async_url(self.database_url)
        self.echo = os.getenv("DATABASE_ECHO", "false").lower() == "true"
        self.pool_size = int(os.getenv("DATABASE_POOL_SIZE", "10"))
        self.max_overflow = int(os.getenv("DATABASE_MAX_OVERFLOW", "20"))
        self.pool_timeout = int(os.getenv("DATABASE_POOL_TIMEOUT", "30"))
        self.pool_recycle = int(os.getenv("DATABASE_POOL_RECYCLE", "3600"))

    @property
    def is_sqlite(self) -> bool:
        return self.async_database_url.startswith("sqlite")

    def pool_options(self) -> Dict[str, int]:
        return {
            "pool_size": self.pool_size,
            "max_overflow": self.max_overflow,
            "pool_timeout": self.pool_timeout,
            "pool_recycle": self.pool_recycle,
        }

    def redacted_url(self) -> str:
        return self.async_database_url.split("@")[-1]


db_config = DatabaseConfig()

if db_config.is_sqlite:
    engine = create_engine(
        db_config.database_url,
        echo=db_config.echo,
        connect_args={"check_same_thread": False},
    )
    # aiosqlite connections must not outlive the event loop that opened them
    async_engine = create_async_engine(
        db_config.async_database_url,
        echo=db_config.echo,
        poolclass=NullPool,
    )
else:
    engine = create_engine(db_config.database_url, echo=db_config.echo, **db_config.pool_options())
    async_engine = create_async_engine(
        db_config.async_database_url,
        echo=db_config.echo,
        connect_args={"server_settings": {"application_name": "swift_invoice"}},
        **db_config.pool_options(),
    )

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False
)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # owner_id uses ON DELETE SET NULL, which SQLite only honours with this pragma
    if db_config.is_sqlite:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(async_engine.sync_engine, "before_cursor_execute")
def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    context._query_start_time = time.time()


@event.listens_for(async_engine.sync_engine, "after_cursor_execute")
def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
    """Log slow queries."""
    total = time.time() - context._query_start_time
    if total > SLOW_QUERY_SECONDS:
        logger.warning("Slow query detected: %.3fs - %s...", total, statement[:100])


def create_database_tables():
    """Create the users and invoices tables from model metadata (tests, local dev)."""
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def drop_database_tables():
    Base.metadata.drop_all(bind=engine)
    logger.info("Database tables dropped")


@asynccontextmanager
async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    """Session scope that commits on success and rolls back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_async_db_dependency():
    """
    FastAPI dependency yielding one session per request.

    Services commit explicitly, so nothing is committed here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def check_async_database_connection() -> bool:
    try:
        async with get_async_db() as db:
            await db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Async database connection check failed: %s", e)
        return False


async def async_database_health_check() -> dict:
    """Connectivity summary for /health and readiness."""
    connection_ok = await check_async_database_connection()
    return {
        "status": "healthy" if connection_ok else "unhealthy",
        "connection": connection_ok,
        "database_info": {
            "database_url": db_config.redacted_url(),
            "backend": "sqlite" if db_config.is_sqlite else "postgresql",
            "pool_size": db_config.pool_size,
        },
    }
