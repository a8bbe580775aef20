"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models carry no
PostgreSQL-only column types, so they are created directly.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from zeger_dispatch.infrastructure.database import Base
from zeger_dispatch.infrastructure import models  # noqa: F401  (registers tables)
from tests.fakes import (
    InMemoryDispatchStore,
    InMemoryNotificationChannel,
    InMemoryRiderStore,
)

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


# ── Test DB (SQLite in-memory) ────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema per test; one shared connection keeps it alive."""
    engine = create_async_engine(TEST_DB_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ── In-memory collaborators ───────────────────────────────────────────


@pytest.fixture
def rider_store() -> InMemoryRiderStore:
    return InMemoryRiderStore()


@pytest.fixture
def dispatch_store() -> InMemoryDispatchStore:
    return InMemoryDispatchStore()


@pytest.fixture
def channel() -> InMemoryNotificationChannel:
    return InMemoryNotificationChannel()
