"""
Tests for single-flight fetch deduplication.
"""

import asyncio

import pytest

from principal_activity.cache import InFlightRegistry


def async_test(coro):
    """Decorator to run async tests with asyncio.run."""

    def wrapper(*args, **kwargs):
        return asyncio.run(coro(*args, **kwargs))

    return wrapper


class TestInFlightRegistry:
    @async_test
    async def test_concurrent_requests_share_one_fetch(self):
        registry = InFlightRegistry()
        calls = 0
        gate = asyncio.Event()

        async def fetch():
            nonlocal calls
            calls += 1
            await gate.wait()
            return "snapshot"

        first = asyncio.ensure_future(registry.run("k", fetch))
        second = asyncio.ensure_future(registry.run("k", fetch))
        await asyncio.sleep(0)
        assert registry.is_pending("k")
        gate.set()
        assert await asyncio.gather(first, second) == ["snapshot", "snapshot"]
        assert calls == 1
        assert len(registry) == 0

    @async_test
    async def test_different_keys_fetch_separately(self):
        registry = InFlightRegistry()
        calls = []

        async def fetch(key):
            calls.append(key)
            return key

        results = await asyncio.gather(
            registry.run("a", lambda: fetch("a")), registry.run("b", lambda: fetch("b"))
        )
        assert results == ["a", "b"]
        assert sorted(calls) == ["a", "b"]

    @async_test
    async def test_failure_reaches_every_waiter(self):
        registry = InFlightRegistry()
        gate = asyncio.Event()

        async def fetch():
            await gate.wait()
            raise RuntimeError("provider down")

        first = asyncio.ensure_future(registry.run("k", fetch))
        second = asyncio.ensure_future(registry.run("k", fetch))
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(first, second, return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)
        assert not registry.is_pending("k")

    @async_test
    async def test_completed_fetch_is_released(self):
        registry = InFlightRegistry()
        calls = 0

        async def fetch():
            nonlocal calls
            calls += 1
            return calls

        assert await registry.run("k", fetch) == 1
        assert await registry.run("k", fetch) == 2

    @async_test
    async def test_cancel_all(self):
        registry = InFlightRegistry()

        async def fetch():
            await asyncio.sleep(10)

        waiter = asyncio.ensure_future(registry.run("k", fetch))
        await asyncio.sleep(0)
        registry.cancel_all()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        assert len(registry) == 0
