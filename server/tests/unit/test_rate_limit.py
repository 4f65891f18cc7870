"""Tests for the sliding-window rate limit store."""

import pytest

from resort_booking.core.rate_limit import InMemoryRateLimitStore


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    store = InMemoryRateLimitStore(clock=clock)

    results = [await store.hit("t:1.2.3.4:booking.create", 3, 60) for _ in range(4)]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results[:3]] == [2, 1, 0]
    assert results[3].retry_after == 60


@pytest.mark.asyncio
async def test_window_slides():
    clock = FakeClock()
    store = InMemoryRateLimitStore(clock=clock)

    assert (await store.hit("key", 1, 60)).allowed
    clock.now += 30
    blocked = await store.hit("key", 1, 60)
    assert not blocked.allowed
    assert blocked.retry_after == 30

    clock.now += 30
    assert (await store.hit("key", 1, 60)).allowed


@pytest.mark.asyncio
async def test_keys_are_independent():
    store = InMemoryRateLimitStore(clock=FakeClock())

    assert (await store.hit("client-a:quote", 1, 60)).allowed
    assert not (await store.hit("client-a:quote", 1, 60)).allowed
    assert (await store.hit("client-b:quote", 1, 60)).allowed
    assert (await store.hit("client-a:booking", 1, 60)).allowed


@pytest.mark.asyncio
async def test_key_count_is_bounded():
    store = InMemoryRateLimitStore(max_keys=2, clock=FakeClock())

    await store.hit("a", 1, 60)
    await store.hit("b", 1, 60)
    await store.hit("c", 1, 60)

    assert len(store) == 2
    # "a" was evicted, so it starts a fresh window
    assert (await store.hit("a", 1, 60)).allowed


@pytest.mark.asyncio
async def test_expired_keys_are_swept():
    clock = FakeClock()
    store = InMemoryRateLimitStore(sweep_interval=10, clock=clock)

    await store.hit("a", 5, 5)
    await store.hit("b", 5, 100)
    clock.now += 20
    await store.hit("c", 5, 5)

    assert len(store) == 2
