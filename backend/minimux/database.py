"""
minimux: Database Session Provider
==================================

What:  Async SQLAlchemy engine, session factory and the session provider the
       App calls once per request.
How:   The engine owns the connection pool; get_session() hands out a fresh
       AsyncSession that the dispatch adapter closes when the request ends.
When:  Engine is created at module import; sessions are created per-request.

Connection Pooling:
    pool_size=20:      Persistent connections for normal load
    max_overflow=10:   Temporary connections for traffic spikes (total max = 30)
    pool_pre_ping:     Validates connections before use
    pool_recycle=3600: Recycles connections every hour
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from minimux.config import settings


# SQLite (used by the test suite) does not take queue pool sizing
_pool_options = (
    {}
    if settings.database_url.startswith("sqlite")
    else {"pool_size": settings.db_pool_size, "max_overflow": settings.db_max_overflow}
)

engine = create_async_engine(
    settings.database_url,
    **_pool_options,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# expire_on_commit=False keeps loaded attributes readable after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def get_session() -> AsyncSession:
    """
    Default session provider for App.

    Returns a new, unused AsyncSession. No connection is checked out of the
    pool until the first query, so requests that never touch the database
    cost nothing here. The caller owns the session and must close it.
    """
    return async_session_factory()


async def dispose_engine() -> None:
    """Close every pooled connection. Registered as an App shutdown hook."""
    await engine.dispose()
