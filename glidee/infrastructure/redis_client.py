"""
Redis async connection pool.

Only the ``redis`` seat-lock mode talks to Redis, so the pool is created on
first use rather than at import.
"""

from typing import Optional

import redis.asyncio as aioredis

from glidee.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


async def get_redis() -> aioredis.Redis:
    """Client backed by the shared pool, creating the pool if needed."""
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True
        )
    return aioredis.Redis(connection_pool=_pool)


async def close_redis() -> None:
    global _pool
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
