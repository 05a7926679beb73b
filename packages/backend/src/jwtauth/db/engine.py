"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
async_sessionmaker for per-operation sessions. The session service opens its
own session and transaction for every operation, so routes receive the
factory rather than a session.

wait_for_database() is the startup probe: the database is often still
booting when the API container starts, so we retry instead of crashing.
"""

import asyncio

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from jwtauth.config import settings
from jwtauth.errors import StorageError

logger = structlog.get_logger(__name__)


def _engine_options(url: str) -> dict:
    # SQLite picks its own pool class; sizing only applies to server databases.
    if url.startswith("sqlite"):
        return {}
    return {"pool_size": settings.db_pool_size, "max_overflow": settings.db_max_overflow}


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    return create_async_engine(url, echo=echo, **_engine_options(url))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory — each operation gets its own session.
async_session_factory = build_session_factory(engine)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency — the process-wide session factory."""
    return async_session_factory


async def _ping(bind: AsyncEngine) -> None:
    async with bind.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def wait_for_database(
    bind: AsyncEngine,
    attempts: int,
    delay: float,
    timeout: float,
) -> None:
    """Block until the database answers ``SELECT 1``.

    Tries ``attempts`` times, each bounded by ``timeout`` seconds, sleeping
    ``delay`` seconds in between. Raises StorageError when every attempt fails.
    """
    op = "db.engine.wait_for_database"
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            await asyncio.wait_for(_ping(bind), timeout)
            logger.info("db.connected", attempt=attempt)
            return
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            last_error = e
            logger.warning(
                "db.connect_failed",
                attempt=attempt,
                attempts=attempts,
                error=str(e) or type(e).__name__,
            )
            if attempt < attempts:
                await asyncio.sleep(delay)

    raise StorageError(
        op, f"database unreachable after {attempts} attempts"
    ) from last_error
