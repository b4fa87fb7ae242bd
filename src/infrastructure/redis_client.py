"""
Shared Redis connection pool.

Redis only holds the ``ride:{id}`` and ``user-rating:{id}`` locks, so one
pool per process is enough.  ``get_redis`` is the FastAPI dependency tests
override with a fake server; ``close_redis`` runs on application shutdown.
"""

import redis.asyncio as aioredis

from src.config import settings

_pool = aioredis.ConnectionPool.from_url(
    settings.redis_url,
    decode_responses=True,
    max_connections=settings.redis_max_connections,
)


async def get_redis() -> aioredis.Redis:
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    await _pool.disconnect()
