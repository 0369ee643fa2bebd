import asyncio

import pytest
from structlog.testing import capture_logs

from src.shared.exceptions import QuotaExceededError
from src.shared.infrastructure.locks import (
    InMemoryKeyedLocks,
    InMemoryPendingReservations,
    LockUnavailableError,
)
from src.shared.shield import ShieldedRunner


async def test_wait_zero_fails_fast_when_held():
    locks = InMemoryKeyedLocks()
    async with locks.hold("instance:a", wait=0):
        with pytest.raises(LockUnavailableError):
            async with locks.hold("instance:a", wait=0):
                pass
    async with locks.hold("instance:a", wait=0):
        pass


async def test_different_keys_do_not_contend():
    locks = InMemoryKeyedLocks()
    async with locks.hold("instance:a", wait=0):
        async with locks.hold("instance:b", wait=0):
            assert locks.is_held("instance:a") and locks.is_held("instance:b")


async def test_bounded_wait_queues_then_times_out():
    locks = InMemoryKeyedLocks()
    order = []

    async def holder():
        async with locks.hold("k"):
            order.append("first")
            await asyncio.sleep(0.05)

    task = asyncio.create_task(holder())
    await asyncio.sleep(0)
    async with locks.hold("k", wait=1.0):
        order.append("second")
    await task
    assert order == ["first", "second"]

    async with locks.hold("k"):
        with pytest.raises(LockUnavailableError):
            async with locks.hold("k", wait=0.01):
                pass


async def test_idle_entries_are_discarded():
    locks = InMemoryKeyedLocks()
    async with locks.hold("k"):
        pass
    assert not locks.is_held("k")
    assert locks._entries == {}


async def test_shielded_unit_survives_caller_cancellation():
    runner = ShieldedRunner()
    release = asyncio.Event()
    done = []

    async def unit():
        await release.wait()
        done.append(True)
        return "ok"

    caller = asyncio.create_task(runner.run(unit))
    await asyncio.sleep(0)
    caller.cancel()
    with pytest.raises(asyncio.CancelledError):
        await caller
    assert runner.inflight == 1

    release.set()
    await runner.drain()
    assert done == [True]
    assert runner.inflight == 0


def _unit_failures(logs):
    return [e for e in logs if e["event"] == "shielded_unit_failed"]


async def test_failure_seen_by_caller_is_not_logged():
    runner = ShieldedRunner()

    async def denied():
        raise QuotaExceededError("messages_per_day", limit=1, current=1)

    async def broken():
        raise RuntimeError("boom")

    with capture_logs() as logs:
        with pytest.raises(QuotaExceededError):
            await runner.run(denied)
        with pytest.raises(RuntimeError):
            await runner.run(broken)
        await asyncio.sleep(0)

    assert _unit_failures(logs) == []


async def test_failure_after_caller_left_is_logged():
    runner = ShieldedRunner()
    release = asyncio.Event()

    async def unit():
        await release.wait()
        raise RuntimeError("boom")

    with capture_logs() as logs:
        caller = asyncio.create_task(runner.run(unit))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        release.set()
        await runner.drain()

    failures = _unit_failures(logs)
    assert len(failures) == 1
    assert failures[0]["log_level"] == "warning"
    assert "boom" in failures[0]["error"]


async def test_expected_outcome_after_caller_left_is_not_logged():
    runner = ShieldedRunner()
    release = asyncio.Event()

    async def unit():
        await release.wait()
        raise QuotaExceededError("instances", limit=1, current=1)

    with capture_logs() as logs:
        caller = asyncio.create_task(runner.run(unit))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        release.set()
        await runner.drain()

    assert _unit_failures(logs) == []


async def test_pending_reservations_are_per_key():
    pending = InMemoryPendingReservations()
    first = await pending.add("quota:messages:a")
    await pending.add("quota:messages:a")
    await pending.add("quota:messages:b")
    assert await pending.count("quota:messages:a") == 2

    await pending.discard("quota:messages:a", first)
    await pending.discard("quota:messages:a", first)
    await pending.discard("quota:messages:c", "unknown")
    assert await pending.count("quota:messages:a") == 1
    assert await pending.count("quota:messages:b") == 1
