"""
Unit tests for per-user locks.

Tests cover:
- Mutual exclusion per key and concurrency across keys
- Lock table cleanup
- Timeouts
- Redis lock acquire/release protocol (mocked client)
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from app.utils.exceptions import LockTimeoutError
from app.utils.locks import RELEASE_SCRIPT, KeyedLock, RedisLock


class TestKeyedLock:
    """Test the in-process keyed lock."""

    @pytest.mark.asyncio
    async def test_same_key_is_exclusive(self):
        lock = KeyedLock()
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with lock.hold("100"):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(5)))
        assert peak == 1

    @pytest.mark.asyncio
    async def test_different_keys_run_concurrently(self):
        lock = KeyedLock()
        inside = asyncio.Event()
        release = asyncio.Event()

        async def holder():
            async with lock.hold("1"):
                inside.set()
                await release.wait()

        task = asyncio.create_task(holder())
        await inside.wait()
        # Another user is not blocked by user 1
        async with lock.hold("2"):
            pass
        release.set()
        await task

    @pytest.mark.asyncio
    async def test_entries_are_released(self):
        lock = KeyedLock()
        async with lock.hold("100"):
            assert len(lock) == 1
        assert len(lock) == 0

    @pytest.mark.asyncio
    async def test_entry_released_after_exception(self):
        lock = KeyedLock()
        with pytest.raises(RuntimeError):
            async with lock.hold("100"):
                raise RuntimeError("boom")
        assert len(lock) == 0
        async with lock.hold("100"):
            pass

    @pytest.mark.asyncio
    async def test_timeout(self):
        lock = KeyedLock(timeout=0.05)
        async with lock.hold("100"):
            with pytest.raises(LockTimeoutError):
                async with lock.hold("100"):
                    pass
        assert len(lock) == 0


class TestRedisLock:
    """Test the Redis lock against a mocked client."""

    @pytest.mark.asyncio
    async def test_acquire_and_release(self):
        redis_client = AsyncMock()
        redis_client.set = AsyncMock(return_value=True)
        redis_client.eval = AsyncMock(return_value=1)
        lock = RedisLock(redis_client, ttl_ms=5000)

        async with lock.hold("100"):
            pass

        set_call = redis_client.set.await_args
        assert set_call.args[0] == "lock:session:100"
        assert set_call.kwargs == {"px": 5000, "nx": True}
        token = set_call.args[1]
        redis_client.eval.assert_awaited_once_with(RELEASE_SCRIPT, 1, "lock:session:100", token)

    @pytest.mark.asyncio
    async def test_waits_until_free(self):
        redis_client = AsyncMock()
        redis_client.set = AsyncMock(side_effect=[None, None, True])
        redis_client.eval = AsyncMock(return_value=1)
        lock = RedisLock(redis_client, wait_seconds=1.0, poll_interval=0.001)

        await lock.acquire("100")
        assert redis_client.set.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout(self):
        redis_client = AsyncMock()
        redis_client.set = AsyncMock(return_value=None)
        lock = RedisLock(redis_client, wait_seconds=0.02, poll_interval=0.005)

        with pytest.raises(LockTimeoutError):
            await lock.acquire("100")

    @pytest.mark.asyncio
    async def test_release_of_expired_lock(self):
        redis_client = AsyncMock()
        redis_client.eval = AsyncMock(return_value=0)
        lock = RedisLock(redis_client)

        assert await lock.release("100", "stale-token") is False
