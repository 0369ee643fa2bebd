"""
Redis keyed locks for multi-process deployments.
SET NX PX to acquire, owner-checked DEL (Lua) to release.
"""
from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from src.shared.infrastructure.locks.lock_protocol import LockUnavailableError
from src.shared.logging import get_logger

logger = get_logger(__name__)


class RedisKeyedLocks:
    """
    Distributed keyed locks.

    The TTL bounds how long a crashed holder can keep a key; it must exceed
    the longest critical section (gateway timeout plus store round-trips).
    """

    _UNLOCK_LUA = """
    -- KEY[1] = lock key
    -- ARGV[1] = expected owner token
    local v = redis.call('GET', KEYS[1])
    if v == ARGV[1] then
      return redis.call('DEL', KEYS[1])
    else
      return 0
    end
    """

    def __init__(
        self,
        redis: Redis,
        *,
        namespace: str = "icp:lock",
        ttl_seconds: float = 120.0,
        poll_interval: float = 0.05,
    ) -> None:
        self.redis = redis
        self._ns = namespace.strip(":")
        self._ttl_ms = int(ttl_seconds * 1000)
        self._poll_interval = poll_interval

    def _make_key(self, key: str) -> str:
        return f"{self._ns}:{key}"

    async def _try_acquire(self, name: str, token: str) -> bool:
        return bool(await self.redis.set(name, token, nx=True, px=self._ttl_ms))

    @asynccontextmanager
    async def hold(self, key: str, *, wait: Optional[float] = None) -> AsyncIterator[None]:
        name = self._make_key(key)
        token = uuid.uuid4().hex
        loop = asyncio.get_running_loop()
        deadline = None if wait is None else loop.time() + wait

        while not await self._try_acquire(name, token):
            if deadline is not None and loop.time() >= deadline:
                raise LockUnavailableError(key)
            await asyncio.sleep(self._poll_interval)

        try:
            yield
        finally:
            try:
                await self.redis.eval(self._UNLOCK_LUA, 1, name, token)
            except RedisError as e:
                # The key still expires via its TTL.
                logger.warning("Failed to release lock", key=key, error=str(e))

    async def close(self) -> None:
        await self.redis.aclose()
