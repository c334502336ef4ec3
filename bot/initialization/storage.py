"""
Bot Initialization - Storage Module.

Module: storage.py
Sets up the session store and the per-user session lock.
Falls back to the database store when Redis is unreachable.
"""

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.config.settings import Settings, settings
from app.repositories.session_repository import build_session_store
from app.services.session_service import SessionService
from app.utils.locks import KeyedLock, RedisLock, UserLock
from app.utils.redis_utils import get_redis_client, get_redis_url_masked


async def connect_redis(config: Settings) -> Redis | None:
    """Connected Redis client, or None if the server cannot be reached."""
    redis_client = get_redis_client(config)
    try:
        await redis_client.ping()
    except RedisError as e:
        logger.error(f"Failed to connect to Redis at {get_redis_url_masked(config)}: {e}")
        await redis_client.aclose()
        return None
    logger.info(f"Redis connection established ({get_redis_url_masked(config)})")
    return redis_client


async def setup_session_storage(
    config: Settings | None = None,
) -> tuple[SessionService, Redis | None]:
    """
    Set up session storage for the configured backend.

    Returns:
        Tuple of (session_service, redis_client)
    """
    config = config or settings
    backend = config.session_backend
    redis_client = None
    session_factory = None

    if backend == "redis":
        redis_client = await connect_redis(config)
        if redis_client is None:
            logger.warning("Falling back to database session store (sessions will persist)")
            backend = "database"

    if backend == "database":
        from app.config.database import async_session_maker, create_tables

        await create_tables()
        session_factory = async_session_maker

    store = build_session_store(
        backend,
        redis_client=redis_client,
        session_factory=session_factory,
        ttl_seconds=config.session_ttl_seconds,
    )

    lock: UserLock
    if redis_client is not None:
        lock = RedisLock(
            redis_client,
            ttl_ms=config.get_lock_ttl_ms(),
            wait_seconds=config.get_lock_wait_seconds(),
        )
    else:
        logger.warning("Per-user session lock is in-process only")
        lock = KeyedLock(timeout=config.get_lock_wait_seconds())

    service = SessionService(store, lock, conflict_retries=config.session_conflict_retries)
    return service, redis_client
