"""
Run units of work that must not be aborted by caller cancellation.

A cancelled caller stops waiting; the unit itself runs to completion so
remote side effects and their local bookkeeping stay consistent.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Set, TypeVar

from src.shared.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class ShieldedRunner:

    def __init__(self) -> None:
        self._inflight: Set["asyncio.Future[Any]"] = set()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def run(self, unit: Callable[[], Awaitable[T]]) -> T:
        task = asyncio.ensure_future(unit())
        self._inflight.add(task)
        task.add_done_callback(self._forget)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if not task.done():
                # nobody is left to receive the outcome
                task.add_done_callback(self._report_orphan)
            raise

    def _forget(self, task: "asyncio.Future[Any]") -> None:
        self._inflight.discard(task)
        # Retrieve the exception so an abandoned unit does not warn at shutdown.
        if not task.cancelled():
            task.exception()

    @staticmethod
    def _report_orphan(task: "asyncio.Future[Any]") -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not getattr(exc, "expected", False):
            logger.warning("shielded_unit_failed", error=repr(exc))

    async def drain(self) -> None:
        """Wait for in-flight units (shutdown)."""
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
