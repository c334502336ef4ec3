"""
Session repository.

Stores conversation sessions keyed by chat user id. Every backend does a
compare-and-set on the session version: a write based on a stale read
raises SessionConflictError instead of overwriting the newer state.
"""

from typing import Protocol

import redis.asyncio as redis
from loguru import logger
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.bot_session import BotSession
from app.models.session import Session
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import SessionConflictError


class SessionStore(Protocol):
    """Persistence contract for sessions."""

    async def get(self, user_id: str) -> Session | None:
        ...

    async def put(self, session: Session, expected_version: int) -> Session:
        ...

    async def delete(self, user_id: str) -> None:
        ...

    async def list_user_ids(self) -> list[str]:
        ...


def _next_revision(session: Session) -> tuple[Session, str]:
    """Copy with bumped version and its JSON blob."""
    stored = session.model_copy(
        update={"version": session.version + 1, "updated_at": utc_now()}
    )
    return stored, stored.model_dump_json()


class InMemorySessionStore:
    """
    Process-local store.

    Sessions are kept serialised so callers never share mutable objects
    with the store.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}
        self._versions: dict[str, int] = {}

    async def get(self, user_id: str) -> Session | None:
        blob = self._blobs.get(user_id)
        if blob is None:
            return None
        return Session.model_validate_json(blob)

    async def put(self, session: Session, expected_version: int) -> Session:
        current = self._versions.get(session.user_id, 0)
        if current != expected_version:
            raise SessionConflictError(session.user_id, expected_version)
        stored, blob = _next_revision(session)
        self._blobs[session.user_id] = blob
        self._versions[session.user_id] = stored.version
        return stored

    async def delete(self, user_id: str) -> None:
        self._blobs.pop(user_id, None)
        self._versions.pop(user_id, None)

    async def list_user_ids(self) -> list[str]:
        return list(self._blobs)


# KEYS[1] blob key, KEYS[2] version key, KEYS[3] user index
# ARGV[1] expected version, ARGV[2] new blob, ARGV[3] ttl seconds, ARGV[4] user id
PUT_SCRIPT = """
local current = tonumber(redis.call("get", KEYS[2]) or "0")
if current ~= tonumber(ARGV[1]) then
    return -1
end
local ttl = tonumber(ARGV[3])
redis.call("set", KEYS[1], ARGV[2], "EX", ttl)
redis.call("set", KEYS[2], current + 1, "EX", ttl)
redis.call("sadd", KEYS[3], ARGV[4])
return current + 1
"""


class RedisSessionStore:
    """
    Redis backend.

    The JSON blob and its version live in two keys updated by one Lua
    script, so the compare-and-set is atomic across processes.
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        ttl_seconds: int = 86400 * 30,
        prefix: str = "session:",
    ) -> None:
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        self.prefix = prefix

    def _blob_key(self, user_id: str) -> str:
        return f"{self.prefix}{user_id}"

    def _version_key(self, user_id: str) -> str:
        return f"{self.prefix}{user_id}:version"

    @property
    def _index_key(self) -> str:
        return f"{self.prefix}users"

    async def get(self, user_id: str) -> Session | None:
        blob = await self.redis.get(self._blob_key(user_id))
        if blob is None:
            return None
        return Session.model_validate_json(blob)

    async def put(self, session: Session, expected_version: int) -> Session:
        stored, blob = _next_revision(session)
        result = await self.redis.eval(
            PUT_SCRIPT,
            3,
            self._blob_key(session.user_id),
            self._version_key(session.user_id),
            self._index_key,
            expected_version,
            blob,
            self.ttl_seconds,
            session.user_id,
        )
        if int(result) < 0:
            raise SessionConflictError(session.user_id, expected_version)
        return stored

    async def delete(self, user_id: str) -> None:
        await self.redis.delete(self._blob_key(user_id), self._version_key(user_id))
        await self.redis.srem(self._index_key, user_id)

    async def list_user_ids(self) -> list[str]:
        members = await self.redis.smembers(self._index_key)
        user_ids = []
        for member in members:
            user_ids.append(member.decode() if isinstance(member, bytes) else member)
        return sorted(user_ids)


class SqlSessionStore:
    """
    SQLAlchemy backend on the bot_sessions table.

    Updates are `UPDATE ... WHERE version = :expected`; zero matched rows
    means another writer got there first.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get(self, user_id: str) -> Session | None:
        async with self.session_factory() as db:
            row = await db.get(BotSession, user_id)
            if row is None:
                return None
            return Session.model_validate_json(row.state)

    async def put(self, session: Session, expected_version: int) -> Session:
        stored, blob = _next_revision(session)
        async with self.session_factory() as db:
            if expected_version == 0:
                stmt = insert(BotSession).values(
                    user_id=session.user_id,
                    state=blob,
                    version=stored.version,
                    created_at=session.created_at,
                    updated_at=stored.updated_at,
                )
                try:
                    await db.execute(stmt)
                    await db.commit()
                except IntegrityError as e:
                    await db.rollback()
                    raise SessionConflictError(session.user_id, expected_version) from e
                return stored

            stmt = (
                update(BotSession)
                .where(
                    BotSession.user_id == session.user_id,
                    BotSession.version == expected_version,
                )
                .values(state=blob, version=stored.version, updated_at=stored.updated_at)
            )
            result = await db.execute(stmt)
            if result.rowcount != 1:
                await db.rollback()
                raise SessionConflictError(session.user_id, expected_version)
            await db.commit()
            return stored

    async def delete(self, user_id: str) -> None:
        async with self.session_factory() as db:
            await db.execute(delete(BotSession).where(BotSession.user_id == user_id))
            await db.commit()

    async def list_user_ids(self) -> list[str]:
        async with self.session_factory() as db:
            result = await db.execute(select(BotSession.user_id).order_by(BotSession.user_id))
            return list(result.scalars().all())


def build_session_store(
    backend: str,
    *,
    redis_client: redis.Redis | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    ttl_seconds: int = 86400 * 30,
) -> SessionStore:
    """
    Create the store for a configured backend name.

    Args:
        backend: memory, redis or database
        redis_client: Required for the redis backend
        session_factory: Required for the database backend
        ttl_seconds: Idle lifetime of Redis sessions

    Returns:
        Session store instance
    """
    if backend == "redis":
        if redis_client is None:
            raise ValueError("redis backend needs a Redis client")
        logger.info("Using Redis session store")
        return RedisSessionStore(redis_client, ttl_seconds=ttl_seconds)
    if backend == "database":
        if session_factory is None:
            raise ValueError("database backend needs a session factory")
        logger.info("Using database session store")
        return SqlSessionStore(session_factory)
    logger.info("Using in-memory session store")
    return InMemorySessionStore()
