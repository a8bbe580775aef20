"""
Async SQLAlchemy engine and session factory.

One engine per process.  Request handlers get a session per request
(see ``api.dependencies.get_db``); the dispatch store opens its own short
sessions from ``async_session_factory`` because negotiations outlive the
request that started them.  ``asyncpg`` keeps the unpaged rider scan from
blocking the loop that also runs the countdowns.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from zeger_dispatch.config import settings

engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    pool_pre_ping=True,
)

# Orders are read after commit (respond endpoint), so keep attributes loaded
async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for the profiles / orders schema."""


async def dispose_engine() -> None:
    """Close pooled connections on shutdown."""
    await engine.dispose()
