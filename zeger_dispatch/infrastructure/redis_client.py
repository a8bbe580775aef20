"""Redis async connection pool (status channel + rider claims)."""

import redis.asyncio as aioredis

from zeger_dispatch.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url, decode_responses=True
)


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    """Disconnect every pooled connection (application shutdown)."""
    await _pool.disconnect()
