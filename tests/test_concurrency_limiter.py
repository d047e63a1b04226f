import asyncio

import pytest

from shared.helper.ConcurrencyLimiter import ConcurrencyLimiter


def test_rejects_non_positive_bound():
    with pytest.raises(ValueError):
        ConcurrencyLimiter(0)


def test_never_exceeds_bound_and_returns_results():
    limiter = ConcurrencyLimiter(2)
    peak = 0

    def make_unit(value):
        async def unit():
            nonlocal peak
            peak = max(peak, limiter.running)
            await asyncio.sleep(0.01)
            return value * 2

        return unit

    async def run():
        return await asyncio.gather(*[limiter.execute(make_unit(i)) for i in range(6)])

    results = asyncio.run(run())
    assert results == [0, 2, 4, 6, 8, 10]
    assert peak == 2
    assert limiter.running == 0
    assert limiter.waiting == 0


def test_waiters_start_in_fifo_order():
    limiter = ConcurrencyLimiter(1)
    started: list[int] = []

    def make_unit(value):
        async def unit():
            started.append(value)
            await asyncio.sleep(0)

        return unit

    async def run():
        await asyncio.gather(*[limiter.execute(make_unit(i)) for i in range(5)])

    asyncio.run(run())
    assert started == [0, 1, 2, 3, 4]


def test_failure_releases_slot_and_propagates():
    limiter = ConcurrencyLimiter(1)

    async def failing():
        raise RuntimeError("boom")

    async def succeeding():
        return "ok"

    async def run():
        with pytest.raises(RuntimeError, match="boom"):
            await limiter.execute(failing)
        return await limiter.execute(succeeding)

    assert asyncio.run(run()) == "ok"
    assert limiter.running == 0
