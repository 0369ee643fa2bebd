"""
In-process keyed locks backed by asyncio.Lock.
Valid for a single event loop / worker process.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Optional

from src.shared.infrastructure.locks.lock_protocol import LockUnavailableError


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    # holders + waiters; the entry is dropped when it reaches zero
    refs: int = 0


class InMemoryKeyedLocks:
    """Registry of asyncio locks, created on demand and discarded when idle."""

    def __init__(self) -> None:
        self._entries: Dict[str, _Entry] = {}

    def is_held(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    @asynccontextmanager
    async def hold(self, key: str, *, wait: Optional[float] = None) -> AsyncIterator[None]:
        entry = self._entries.setdefault(key, _Entry())
        entry.refs += 1
        try:
            if wait == 0:
                # Anyone else holding or queued means busy.
                if entry.refs > 1 or entry.lock.locked():
                    raise LockUnavailableError(key)
                await entry.lock.acquire()
            elif wait is None:
                await entry.lock.acquire()
            else:
                try:
                    await asyncio.wait_for(entry.lock.acquire(), timeout=wait)
                except asyncio.TimeoutError:
                    raise LockUnavailableError(key) from None
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.refs -= 1
            if entry.refs == 0 and self._entries.get(key) is entry:
                del self._entries[key]
