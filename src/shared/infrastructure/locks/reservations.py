"""
Pending reservations keyed by resource (e.g. "quota:messages:<uuid>").

An admitted action holds a reservation from admission until its record is
written, so admissions evaluated in between count it without waiting on it.
"""
from __future__ import annotations

import time
import uuid
from typing import Dict, Protocol, Set

from redis.asyncio import Redis


class IPendingReservations(Protocol):

    async def count(self, key: str) -> int:
        """Live reservations under `key`."""
        ...

    async def add(self, key: str) -> str:
        """Reserve one unit under `key`; returns the reservation token."""
        ...

    async def discard(self, key: str, token: str) -> None:
        """Release a reservation. Unknown tokens are ignored."""
        ...


class InMemoryPendingReservations:
    """Single-process registry."""

    def __init__(self) -> None:
        self._pending: Dict[str, Set[str]] = {}

    async def count(self, key: str) -> int:
        return len(self._pending.get(key, ()))

    async def add(self, key: str) -> str:
        token = uuid.uuid4().hex
        self._pending.setdefault(key, set()).add(token)
        return token

    async def discard(self, key: str, token: str) -> None:
        tokens = self._pending.get(key)
        if tokens is None:
            return
        tokens.discard(token)
        if not tokens:
            del self._pending[key]


class RedisPendingReservations:
    """
    Shared registry for multi-process deployments.

    One sorted set per key, scored by expiry time. A reservation left behind
    by a crashed process stops counting after `ttl_seconds`.
    """

    def __init__(
        self,
        redis: Redis,
        *,
        namespace: str = "icp:pending",
        ttl_seconds: float = 120.0,
    ) -> None:
        self.redis = redis
        self._ns = namespace.strip(":")
        self._ttl = ttl_seconds

    def _make_key(self, key: str) -> str:
        return f"{self._ns}:{key}"

    async def count(self, key: str) -> int:
        name = self._make_key(key)
        await self.redis.zremrangebyscore(name, "-inf", time.time())
        return int(await self.redis.zcard(name))

    async def add(self, key: str) -> str:
        name = self._make_key(key)
        token = uuid.uuid4().hex
        await self.redis.zadd(name, {token: time.time() + self._ttl})
        await self.redis.expire(name, int(self._ttl) + 1)
        return token

    async def discard(self, key: str, token: str) -> None:
        await self.redis.zrem(self._make_key(key), token)
