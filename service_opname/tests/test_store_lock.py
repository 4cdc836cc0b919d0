"""
Unit tests for the store lock and version counter.
"""

import asyncio

import pytest

from service_opname.app.store import LocalStoreLock, LocalVersionCounter
from shared.errors import LockTimeoutError


class TestLocalStoreLock:
    """Test cases for LocalStoreLock."""

    @pytest.mark.asyncio
    async def test_second_holder_times_out(self):
        lock = LocalStoreLock(timeout=0.02)

        async with lock.hold():
            with pytest.raises(LockTimeoutError) as exc_info:
                await lock.acquire()

        assert exc_info.value.code == "LOCK_TIMEOUT"
        assert exc_info.value.details == {"timeout_seconds": 0.02}
        assert not lock.locked

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self):
        lock = LocalStoreLock(timeout=0.02)

        with pytest.raises(RuntimeError):
            async with lock.hold():
                raise RuntimeError("mutation failed")

        assert not lock.locked

    @pytest.mark.asyncio
    async def test_waiter_gets_lock_after_release(self):
        lock = LocalStoreLock(timeout=1.0)
        order = []

        async def holder():
            async with lock.hold():
                order.append("first")
                await asyncio.sleep(0.01)

        async def waiter():
            await asyncio.sleep(0)
            async with lock.hold():
                order.append("second")

        await asyncio.gather(holder(), waiter())
        assert order == ["first", "second"]


class TestVersionCounter:
    """Test cases for LocalVersionCounter."""

    @pytest.mark.asyncio
    async def test_local_counter_is_monotonic(self):
        counter = LocalVersionCounter(initial=5)
        assert await counter.bump() == 6
        assert await counter.bump() == 7
        assert await counter.current() == 7

    def test_each_counter_gets_its_own_epoch(self):
        first = LocalVersionCounter()
        second = LocalVersionCounter()

        assert first.epoch != second.epoch
        assert len(first.epoch) == 32
        assert LocalVersionCounter(epoch="seed-1").epoch == "seed-1"
