import pytest

from catalog_sync.pipeline.limiter import RateLimiter


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.mark.asyncio
async def test_first_acquire_does_not_wait():
    clock = _Clock()
    limiter = RateLimiter(60, clock=clock, sleep=clock.sleep)

    await limiter.acquire()

    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_back_to_back_acquires_are_spaced_by_interval():
    clock = _Clock()
    limiter = RateLimiter(30, clock=clock, sleep=clock.sleep)

    await limiter.acquire()
    await limiter.acquire()
    await limiter.acquire()

    assert limiter.interval == pytest.approx(2.0)
    assert clock.sleeps == [pytest.approx(2.0), pytest.approx(2.0)]


@pytest.mark.asyncio
async def test_elapsed_time_counts_towards_interval():
    clock = _Clock()
    limiter = RateLimiter(60, clock=clock, sleep=clock.sleep)

    await limiter.acquire()
    clock.now += 0.75
    await limiter.acquire()
    clock.now += 5
    await limiter.acquire()

    assert clock.sleeps == [pytest.approx(0.25)]


def test_requests_per_minute_must_be_positive():
    with pytest.raises(ValueError):
        RateLimiter(0)
