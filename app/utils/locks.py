"""
Per-user locks.

Every read-modify-write of a session runs inside the lock of its user id.
KeyedLock serialises tasks of one process; RedisLock serialises processes
sharing one Redis.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol
from uuid import uuid4

import redis.asyncio as redis
from loguru import logger

from app.utils.exceptions import LockTimeoutError


# Release only if the lock is still ours
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class UserLock(Protocol):
    """Exclusive scope keyed by user id."""

    def hold(self, key: str) -> AbstractAsyncContextManager[None]:
        ...


class _Entry:
    __slots__ = ("lock", "waiters")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.waiters = 0


class KeyedLock:
    """
    In-process lock table.

    Entries are reference counted and dropped once no task holds or waits
    for them, so the table only contains keys with activity.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _Entry()
        entry.waiters += 1
        try:
            try:
                await asyncio.wait_for(entry.lock.acquire(), timeout=self.timeout)
            except TimeoutError as e:
                raise LockTimeoutError(key) from e
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            entry.waiters -= 1
            if entry.waiters == 0:
                self._entries.pop(key, None)


class RedisLock:
    """
    Distributed lock on Redis.

    SET NX PX with a random token; release runs a Lua check-and-delete so an
    expired lock taken over by another process is never deleted. Waiters poll
    until wait_seconds elapse.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_ms: int = 30000,
        wait_seconds: float = 20.0,
        poll_interval: float = 0.05,
        prefix: str = "lock:session:",
    ) -> None:
        self.redis = redis_client
        self.ttl_ms = ttl_ms
        self.wait_seconds = wait_seconds
        self.poll_interval = poll_interval
        self.prefix = prefix

    async def acquire(self, key: str) -> str:
        """
        Take the lock, waiting up to wait_seconds.

        Returns:
            Ownership token needed for release

        Raises:
            LockTimeoutError: If the lock stays taken
        """
        name = f"{self.prefix}{key}"
        token = uuid4().hex
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.wait_seconds
        while True:
            if await self.redis.set(name, token, px=self.ttl_ms, nx=True):
                return token
            if loop.time() >= deadline:
                raise LockTimeoutError(key)
            await asyncio.sleep(self.poll_interval)

    async def release(self, key: str, token: str) -> bool:
        released = await self.redis.eval(RELEASE_SCRIPT, 1, f"{self.prefix}{key}", token)
        if not released:
            logger.warning(f"Lock for {key} expired before release")
        return bool(released)

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        token = await self.acquire(key)
        try:
            yield
        finally:
            try:
                await self.release(key, token)
            except redis.RedisError as e:
                # Lock expires by itself after ttl_ms
                logger.error(f"Failed to release lock for {key}: {e}")
