from __future__ import annotations

import asyncio

import pytest

from realty_api.guard import LoadGuard
from realty_api.types import SKIP

from .conftest import ManualClock


@pytest.fixture
def guard(clock: ManualClock) -> LoadGuard:
    return LoadGuard(clock)


@pytest.mark.asyncio
async def test_overlapping_calls_run_once(guard: LoadGuard) -> None:
    release = asyncio.Event()
    runs = 0

    async def load() -> str:
        nonlocal runs
        runs += 1
        await release.wait()
        return "loaded"

    first = asyncio.create_task(guard.guard("portfolio", 3000, load))
    await asyncio.sleep(0)
    assert guard.is_in_flight("portfolio")

    second = await guard.guard("portfolio", 3000, load)
    release.set()

    assert second is SKIP
    assert await first == "loaded"
    assert runs == 1
    assert not guard.is_in_flight("portfolio")


@pytest.mark.asyncio
async def test_calls_within_interval_are_skipped(guard: LoadGuard, clock: ManualClock) -> None:
    calls = []

    async def load() -> int:
        calls.append(clock.now)
        return len(calls)

    assert await guard.guard("kyc", 2000, load) == 1
    clock.advance(1.5)
    assert await guard.guard("kyc", 2000, load) is SKIP
    clock.advance(0.6)
    assert await guard.guard("kyc", 2000, load) == 2


@pytest.mark.asyncio
async def test_keys_are_independent(guard: LoadGuard) -> None:
    async def load() -> str:
        return "ok"

    assert await guard.guard(("portfolio", "a"), 3000, load) == "ok"
    assert await guard.guard(("portfolio", "b"), 3000, load) == "ok"


@pytest.mark.asyncio
async def test_failure_releases_flag_and_propagates(guard: LoadGuard, clock: ManualClock) -> None:
    async def boom() -> None:
        raise RuntimeError("rpc down")

    with pytest.raises(RuntimeError):
        await guard.guard("epochs", 3000, boom)

    assert not guard.is_in_flight("epochs")
    clock.advance(3.0)

    async def load() -> str:
        return "recovered"

    assert await guard.guard("epochs", 3000, load) == "recovered"


@pytest.mark.asyncio
async def test_cancellation_releases_flag(guard: LoadGuard) -> None:
    started = asyncio.Event()

    async def slow() -> None:
        started.set()
        await asyncio.sleep(3600)

    task = asyncio.create_task(guard.guard("portfolio", 0, slow))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not guard.is_in_flight("portfolio")


@pytest.mark.asyncio
async def test_abandoned_load_is_discarded_and_does_not_block(guard: LoadGuard) -> None:
    release = asyncio.Event()

    async def stale() -> str:
        await release.wait()
        return "stale"

    async def fresh() -> str:
        return "fresh"

    first = asyncio.create_task(guard.guard("portfolio", 3000, stale))
    await asyncio.sleep(0)

    guard.abandon("portfolio")
    assert not guard.is_in_flight("portfolio")
    assert await guard.guard("portfolio", 3000, fresh) == "fresh"

    release.set()
    assert await first is SKIP


@pytest.mark.asyncio
async def test_abandoned_failure_is_swallowed(guard: LoadGuard) -> None:
    release = asyncio.Event()

    async def failing() -> None:
        await release.wait()
        raise RuntimeError("after teardown")

    task = asyncio.create_task(guard.guard("kyc", 2000, failing))
    await asyncio.sleep(0)
    guard.invalidate_all()
    release.set()

    assert await task is SKIP


@pytest.mark.asyncio
async def test_abandoned_load_does_not_overwrite_newer_completion(
    guard: LoadGuard, clock: ManualClock
) -> None:
    release = asyncio.Event()

    async def stale() -> str:
        await release.wait()
        return "stale"

    async def fresh() -> str:
        return "fresh"

    first = asyncio.create_task(guard.guard("portfolio", 3000, stale))
    await asyncio.sleep(0)
    guard.abandon("portfolio")

    second = asyncio.create_task(guard.guard("portfolio", 3000, stale))
    await asyncio.sleep(0)
    assert guard.is_in_flight("portfolio")

    release.set()
    assert await first is SKIP
    assert await second == "stale"
    assert await guard.guard("portfolio", 3000, fresh) is SKIP
