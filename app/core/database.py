"""Async SQLAlchemy setup for the pgvector content-embeddings store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings

logger = logging.getLogger(__name__)

_ResultT = TypeVar("_ResultT")

_CONNECTION_ERROR_MARKERS = (
    "connection is closed",
    "underlying connection is closed",
    "server closed the connection unexpectedly",
    "connection was closed",
)

CONTENT_EMBEDDINGS_DDL = (
    "CREATE EXTENSION IF NOT EXISTS vector",
    """
    CREATE TABLE IF NOT EXISTS content_embeddings (
        id TEXT PRIMARY KEY,
        chunk_type TEXT NOT NULL,
        chunk_text TEXT NOT NULL,
        embedding vector({dimensions}) NOT NULL,
        source_collection TEXT,
        source_id TEXT,
        content_project_id INTEGER,
        itinerary_id INTEGER,
        destination_id INTEGER,
        property_id INTEGER,
        content_type TEXT,
        destinations TEXT[],
        properties TEXT[],
        species TEXT[],
        metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
)


@lru_cache
def get_engine() -> AsyncEngine:
    """Create the async engine on first use."""
    return create_async_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.database_echo,
        pool_pre_ping=True,
        pool_recycle=300,
    )


@lru_cache
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_session_context(
    *,
    commit_on_exit: bool = False,
) -> AsyncGenerator[AsyncSession, None]:
    """Get database session as context manager for non-DI usage."""
    async with get_session_maker()() as session:
        try:
            yield session
            if commit_on_exit:
                await session.commit()
        except Exception as e:
            logger.warning("Database session error, rolling back", extra={"error": repr(e)})
            try:
                await session.rollback()
            except Exception:
                logger.warning("Rollback also failed (connection likely closed)")
            raise


def is_transient_connection_error(exc: Exception) -> bool:
    """Return True when an exception likely came from a dropped DB connection."""
    if isinstance(exc, (InterfaceError, OperationalError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True

    lowered = str(exc).lower()
    return any(marker in lowered for marker in _CONNECTION_ERROR_MARKERS)


async def run_with_transient_db_retry(
    operation: Callable[[], Awaitable[_ResultT]],
    *,
    operation_name: str,
    attempts: int = 3,
    base_delay_seconds: float = 0.2,
) -> _ResultT:
    """Run an async DB operation, retrying only on dropped connections."""
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not is_transient_connection_error(exc) or attempt >= attempts:
                raise
            logger.warning(
                "Transient database connection error; retrying",
                extra={"operation": operation_name, "attempt": attempt, "max_attempts": attempts},
            )
            await asyncio.sleep(base_delay_seconds * attempt)
            attempt += 1


async def init_vector_store() -> None:
    """Create the pgvector extension and embeddings table if missing."""
    logger.info("Initializing content_embeddings table")
    async with get_engine().begin() as conn:
        for statement in CONTENT_EMBEDDINGS_DDL:
            await conn.execute(
                text(statement.format(dimensions=settings.embeddings_dimensions))
            )


async def close_db() -> None:
    """Close database connections if the engine was ever created."""
    if get_engine.cache_info().currsize == 0:
        return
    logger.info("Closing database connections")
    await get_engine().dispose()
