"""
FastAPI application factory.

* Registers routes for rider discovery, dispatch negotiation and admin.
* Builds the Redis channel, dispatch store and negotiator via lifespan
  events; pending negotiations are interrupted on shutdown.
* Maps domain errors to HTTP statuses and applies rate limiting.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from zeger_dispatch.api.middleware import limiter
from zeger_dispatch.api.routes import admin, dispatches, riders
from zeger_dispatch.config import settings
from zeger_dispatch.domain.errors import InvalidSelection, RiderBusy, StoreUnavailable
from zeger_dispatch.infrastructure.database import async_session_factory, dispose_engine
from zeger_dispatch.infrastructure.notifications import RedisNotificationChannel
from zeger_dispatch.infrastructure.redis_client import close_redis, get_redis
from zeger_dispatch.infrastructure.repositories import SqlDispatchStore
from zeger_dispatch.workers.negotiator import DispatchNegotiator

logging.basicConfig(level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the negotiator on startup; stop it on shutdown."""
    redis = await get_redis()
    app.state.notification_channel = RedisNotificationChannel(redis)
    app.state.dispatch_store = SqlDispatchStore(
        async_session_factory,
        redis,
        lock_ttl_seconds=(
            settings.negotiation_window_seconds + settings.rider_lock_grace_seconds
        ),
    )
    app.state.negotiator = DispatchNegotiator(
        app.state.dispatch_store, app.state.notification_channel
    )
    yield
    await app.state.negotiator.shutdown()
    await close_redis()
    await dispose_engine()


async def _store_unavailable_handler(request: Request, exc: StoreUnavailable):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


async def _invalid_selection_handler(request: Request, exc: InvalidSelection):
    status_code = 409 if isinstance(exc, RiderBusy) else 422
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app() -> FastAPI:
    app = FastAPI(
        title="Zeger Rider Dispatch API",
        description=(
            "Finds coffee riders near a customer, ranks them by availability "
            "and distance, and runs the 60-second accept/reject window "
            "between the customer and the chosen rider."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(StoreUnavailable, _store_unavailable_handler)
    app.add_exception_handler(InvalidSelection, _invalid_selection_handler)

    # Routers
    app.include_router(riders.router, prefix="/api/v1")
    app.include_router(dispatches.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
