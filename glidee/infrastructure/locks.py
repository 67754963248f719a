"""
Redis-based distributed lock and the seat-allocation guards built on it.

The booking allocator reads a trip's seat count and then inserts a booking.
Without a guard two requests for the last seat can both pass the check.
``RedisSeatGuard`` serialises allocation per trip across API processes;
``NullSeatGuard`` leaves the check-then-insert unguarded.

Lock implementation uses SET NX EX for acquire and a Lua script for
atomic check-and-delete on release.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis

from glidee.domain.errors import ConflictError

logger = logging.getLogger(__name__)


class DistributedLock:
    def __init__(
        self, client: aioredis.Redis, key: str, ttl_seconds: int = 30
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.token = str(uuid.uuid4())

    async def acquire(
        self, wait_seconds: float = 0.0, retry_interval: float = 0.05
    ) -> bool:
        """Try to acquire, retrying for up to *wait_seconds*. True on success."""
        deadline = time.monotonic() + wait_seconds
        while True:
            if await self.redis.set(self.key, self.token, nx=True, ex=self.ttl):
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(retry_interval)

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        lua = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        await self.redis.eval(lua, 1, self.key, self.token)


class NullSeatGuard:
    """No serialisation; concurrent allocations may over-book."""

    @asynccontextmanager
    async def hold(self, trip_id: str) -> AsyncIterator[None]:
        yield


class RedisSeatGuard:
    def __init__(
        self,
        client: aioredis.Redis,
        ttl_seconds: int = 10,
        wait_seconds: float = 3.0,
    ):
        self.redis = client
        self.ttl = ttl_seconds
        self.wait = wait_seconds

    @asynccontextmanager
    async def hold(self, trip_id: str) -> AsyncIterator[None]:
        lock = DistributedLock(self.redis, f"trip-seats:{trip_id}", self.ttl)
        if not await lock.acquire(wait_seconds=self.wait):
            logger.warning("Seat lock for trip %s busy after %.1fs", trip_id, self.wait)
            raise ConflictError(
                "Seat allocation is busy, please retry",
                code="seat-allocation-busy",
            )
        try:
            yield
        finally:
            await lock.release()
