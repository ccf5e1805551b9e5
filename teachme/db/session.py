"""Short-lived sessions for repository calls.

Each repository call opens its own session from the factory.  The
aggregation service runs several lookups for the same request
concurrently, and one AsyncSession must never be shared between
concurrent tasks, so sessions are per call and the pool size is the
real ceiling on database concurrency.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from teachme.core.metrics import STORE_ERRORS

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """The backing store failed to answer.  The original error is chained."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"{operation} failed")
        self.operation = operation


@asynccontextmanager
async def store_session(
    factory: async_sessionmaker[AsyncSession],
    operation: str,
    *,
    write: bool = False,
) -> AsyncIterator[AsyncSession]:
    """Yield a session; translate SQLAlchemy failures into StoreError.

    With ``write=True`` the body runs inside one transaction that commits
    on success and rolls back on any exception.
    """
    try:
        async with factory() as session:
            if write:
                async with session.begin():
                    yield session
            else:
                yield session
    except (SQLAlchemyError, OSError) as e:
        STORE_ERRORS.labels(operation=operation).inc()
        logger.error("Store operation %s failed: %s", operation, e)
        raise StoreError(operation) from e
