"""
Tests for the last-write-wins debouncer.
"""

import asyncio

import pytest

from principal_activity.debounce import Debouncer


def async_test(coro):
    """Decorator to run async tests with asyncio.run."""

    def wrapper(*args, **kwargs):
        return asyncio.run(coro(*args, **kwargs))

    return wrapper


class TestDebouncer:
    @async_test
    async def test_last_write_wins(self):
        calls = []
        debouncer = Debouncer(0.01, calls.append)
        debouncer.call("a")
        debouncer.call("ab")
        debouncer.call("abc")
        assert debouncer.pending
        await asyncio.sleep(0.05)
        assert calls == ["abc"]
        assert debouncer.fire_count == 1
        assert not debouncer.pending

    @async_test
    async def test_generations_increase(self):
        debouncer = Debouncer(0.01, lambda *_: None)
        assert debouncer.call("a") == 1
        assert debouncer.call("b") == 2
        assert debouncer.generation == 2
        debouncer.cancel()

    @async_test
    async def test_cancel(self):
        calls = []
        debouncer = Debouncer(0.01, calls.append)
        debouncer.call("a")
        debouncer.cancel()
        await asyncio.sleep(0.03)
        assert calls == []
        assert not debouncer.pending

    @async_test
    async def test_flush_runs_now_once(self):
        calls = []
        debouncer = Debouncer(0.01, calls.append)
        debouncer.call("x")
        assert debouncer.flush() is True
        assert calls == ["x"]
        assert debouncer.flush() is False
        await asyncio.sleep(0.03)
        assert calls == ["x"]

    @async_test
    async def test_stale_timer_is_inert(self):
        calls = []
        debouncer = Debouncer(0.01, calls.append)
        debouncer.call("old")
        debouncer.call("new")
        # a timer from the first call firing late must not apply its text
        debouncer._fire(1, ("old",))
        assert calls == []
        await asyncio.sleep(0.03)
        assert calls == ["new"]

    @async_test
    async def test_separate_bursts_fire_separately(self):
        calls = []
        debouncer = Debouncer(0.01, calls.append)
        debouncer.call("first")
        await asyncio.sleep(0.03)
        debouncer.call("second")
        await asyncio.sleep(0.03)
        assert calls == ["first", "second"]

    def test_requires_running_loop(self):
        with pytest.raises(RuntimeError):
            Debouncer(0.01, lambda *_: None).call("x")
