"""Async SQLAlchemy engine and session factory.

The engine is owned by a ``Database`` object that the application
lifespan constructs and disposes explicitly.  Nothing connects at import
time; handlers reach the database only through repositories that were
handed the session factory during startup.

When DATABASE_URL is not configured the lifespan yields None and the
app falls back to in-memory repositories.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from teachme.core.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


class Database:
    """Engine plus session factory for one process lifetime."""

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        pool_size: int = 5,
        max_overflow: int = 10,
    ) -> None:
        self.engine = create_async_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
        )
        self.session_factory: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError):
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    async def dispose(self) -> None:
        await self.engine.dispose()


@asynccontextmanager
async def lifespan_db(settings: Settings) -> AsyncIterator[Database | None]:
    """Startup/shutdown hook for the database engine.

    Call from FastAPI's lifespan context manager.
    """
    if not settings.database_url:
        logger.info("No DATABASE_URL configured, using in-memory repositories")
        yield None
        return

    database = Database(
        settings.database_url,
        echo=settings.is_dev,  # log SQL in dev only
        pool_size=settings.db_pool_size,
    )
    logger.info("Database engine created: %s", database.engine.url)
    try:
        yield database
    finally:
        await database.dispose()
        logger.info("Database engine disposed")
