"""
Redis-based distributed lock.

Guards the per-ride critical region in which remaining seats are checked
and a seat-consuming write is committed, and the per-user region in which an
aggregate rating is recomputed.  Works across API processes, which an
in-process lock would not.

Implementation uses SET NX EX for acquire (polled until a bounded deadline)
and a Lua script for atomic check-and-delete on release.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import redis.asyncio as aioredis

from src.config import settings
from src.domain.errors import InternalConsistencyError

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class LockNotAcquired(RuntimeError):
    """Raised when a lock could not be taken before the wait deadline."""


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 30,
        wait_seconds: Optional[float] = None,
        retry_interval: float = 0.05,
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.wait_seconds = wait_seconds
        self.retry_interval = retry_interval
        self.token = str(uuid.uuid4())

    async def acquire(self, wait_seconds: Optional[float] = None) -> bool:
        """
        Try to acquire.  Returns True on success.

        With a wait, keeps polling until the deadline passes; without one a
        single attempt is made.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (wait_seconds or 0)
        while True:
            if await self.redis.set(self.key, self.token, nx=True, ex=self.ttl):
                return True
            if wait_seconds is None or loop.time() >= deadline:
                return False
            await asyncio.sleep(self.retry_interval)

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        await self.redis.eval(_RELEASE_SCRIPT, 1, self.key, self.token)

    # context-manager support
    async def __aenter__(self):
        acquired = await self.acquire(self.wait_seconds)
        if not acquired:
            logger.warning("Timed out waiting for %s", self.key)
            raise LockNotAcquired(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()


def ride_lock(client: aioredis.Redis, ride_id: str) -> DistributedLock:
    """Critical region for every write that reads or changes a ride's seats."""
    return DistributedLock(
        client,
        f"ride:{ride_id}",
        ttl_seconds=settings.ride_lock_ttl_seconds,
        wait_seconds=settings.lock_wait_seconds,
    )


def rating_lock(client: aioredis.Redis, user_id: str) -> DistributedLock:
    return DistributedLock(
        client,
        f"user-rating:{user_id}",
        ttl_seconds=settings.ride_lock_ttl_seconds,
        wait_seconds=settings.lock_wait_seconds,
    )


@asynccontextmanager
async def critical_region(lock: DistributedLock) -> AsyncIterator[DistributedLock]:
    """
    Hold *lock* for the body.  A wait that runs out surfaces as an
    ``InternalConsistencyError`` the caller can retry.
    """
    try:
        await lock.__aenter__()
    except LockNotAcquired as exc:
        raise InternalConsistencyError(
            "Resource is busy, retry the request"
        ) from exc
    try:
        yield lock
    finally:
        await lock.release()
