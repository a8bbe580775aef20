"""FastAPI dependency injection helpers."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from zeger_dispatch.domain.locator import RiderLocator
from zeger_dispatch.infrastructure.database import async_session_factory
from zeger_dispatch.infrastructure.notifications import RedisNotificationChannel
from zeger_dispatch.infrastructure.repositories import (
    RiderRepository,
    SqlDispatchStore,
)
from zeger_dispatch.workers.negotiator import DispatchNegotiator


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_locator(db: AsyncSession = Depends(get_db)) -> RiderLocator:
    return RiderLocator(RiderRepository(db))


# Long-lived collaborators are built once in the app lifespan


def get_negotiator(request: Request) -> DispatchNegotiator:
    return request.app.state.negotiator


def get_dispatch_store(request: Request) -> SqlDispatchStore:
    return request.app.state.dispatch_store


def get_notification_channel(request: Request) -> RedisNotificationChannel:
    return request.app.state.notification_channel
