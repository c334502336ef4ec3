"""
Session service.

Runs every read-modify-write of a session inside the per-user lock and
persists it with a version check.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from loguru import logger

from app.models.session import Session
from app.repositories.session_repository import SessionStore
from app.utils.exceptions import SessionConflictError
from app.utils.locks import KeyedLock, UserLock


T = TypeVar("T")


class SessionService:
    """
    Per-user session transactions.

    Usage:
        async with session_service.transaction(user_id) as session:
            session.reset_flow()
        # persisted here
    """

    def __init__(
        self,
        store: SessionStore,
        lock: UserLock | None = None,
        conflict_retries: int = 3,
    ) -> None:
        """
        Initialize session service.

        Args:
            store: Session persistence backend
            lock: Per-user lock (in-process KeyedLock by default)
            conflict_retries: Attempts of mutate() after a stale write
        """
        self.store = store
        self.lock = lock or KeyedLock()
        self.conflict_retries = conflict_retries
        self.logger = logger.bind(service=self.__class__.__name__)

    async def load(self, user_id: str) -> Session:
        """Stored session or a fresh unsaved one."""
        session = await self.store.get(user_id)
        if session is None:
            self.logger.debug(f"New session for user {user_id}")
            session = Session(user_id=user_id)
        return session

    async def commit(self, session: Session) -> None:
        """
        Persist the session now, inside an open transaction.

        The object is updated in place with the stored version so later
        commits of the same transaction chain correctly.

        Raises:
            SessionConflictError: If the stored session changed meanwhile
        """
        stored = await self.store.put(session, expected_version=session.version)
        session.version = stored.version
        session.updated_at = stored.updated_at

    @asynccontextmanager
    async def transaction(self, user_id: str) -> AsyncIterator[Session]:
        """
        Lock, load, yield and persist one user's session.

        Nothing is persisted when the body raises.
        """
        async with self.lock.hold(user_id):
            session = await self.load(user_id)
            yield session
            await self.commit(session)

    async def mutate(self, user_id: str, fn: Callable[[Session], Awaitable[T]]) -> T:
        """
        Apply fn to the session, re-reading and retrying on a stale write.

        Args:
            user_id: Chat user id
            fn: Coroutine function receiving the session

        Returns:
            Result of the successful fn call
        """
        attempt = 1
        while True:
            try:
                async with self.transaction(user_id) as session:
                    result = await fn(session)
                return result
            except SessionConflictError:
                if attempt >= self.conflict_retries:
                    raise
                self.logger.warning(
                    f"Session conflict for user {user_id}, retrying ({attempt})"
                )
                attempt += 1

    async def delete(self, user_id: str) -> None:
        async with self.lock.hold(user_id):
            await self.store.delete(user_id)

    async def list_user_ids(self) -> list[str]:
        return await self.store.list_user_ids()
