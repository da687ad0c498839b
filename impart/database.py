"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request
  - bounded(): Wraps a single persistence call in the configured timeout

Session lifecycle:
  Each API request gets its own session via get_db(). Principal resolution,
  guards and the handler all share that one session because FastAPI caches
  the dependency for the duration of the request.

  get_db() finishes only after the response has been sent, so a handler that
  writes commits explicitly before returning. A failed commit then becomes a
  500, and a token handed to the client is already stored. The commit in
  get_db() only closes out read-only requests; any exception rolls back.

Timeouts:
  Every statement the services issue goes through bounded(). A call that
  outlives DB_TIMEOUT_SECONDS is cancelled and raises TimeoutError, which
  surfaces as a 500. Nothing is retried.
"""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from impart.config import settings

T = TypeVar("T")


# echo=True in debug mode logs all SQL statements
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# expire_on_commit=False keeps attributes readable after commit without a
# synchronous refresh, which would fail in async context.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def bounded(call: Awaitable[T]) -> T:
    """
    Await a persistence call, giving up after DB_TIMEOUT_SECONDS.

    If the surrounding request task is cancelled, the cancellation reaches
    the awaited statement as well.

    Raises:
        TimeoutError: If the call did not complete in time.
    """
    return await asyncio.wait_for(call, timeout=settings.DB_TIMEOUT_SECONDS)


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    Handlers that write must `await bounded(db.commit())` before returning;
    this cleanup runs after the response is sent. Any exception rolls the
    session back, and the session is closed when the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
