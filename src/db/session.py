"""
Async SQLAlchemy engine and session factory.

Engine operations commit their own work, and each one holds a single
database transaction. The helpers here open one session per request or
job and roll it back if an exception escapes.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from src.config import settings

logger = logging.getLogger(__name__)

# Connections are not pooled in-process; PgBouncer or the platform pooler does that
engine = create_async_engine(
    settings.database_url,
    poolclass=NullPool,
    echo=settings.sql_echo,
)

# Services flush explicitly (ids, partial unique indexes), so autoflush is off
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Session for work outside a request, such as scheduler jobs.

    Usage:
        async with get_db_context() as db:
            await escalate_overdue(db)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.debug("Rolling back session after error")
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request."""
    async with get_db_context() as session:
        yield session
