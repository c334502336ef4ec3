"""Redis connection utilities.

Helpers for creating Redis connections from settings. The session store and
the distributed session lock share one client.
"""

import redis.asyncio as redis

from app.config.settings import Settings, settings


def get_redis_client(config: Settings | None = None) -> redis.Redis:
    """
    Create a Redis client with settings from config.

    Returns:
        redis.Redis: Client returning raw bytes (session blobs are decoded by the store)

    Example:
        >>> redis_client = get_redis_client()
        >>> await redis_client.ping()
        >>> await redis_client.aclose()
    """
    config = config or settings
    return redis.Redis(
        host=config.redis_host,
        port=config.redis_port,
        password=config.redis_password,
        db=config.redis_db,
    )


def get_redis_url_masked(config: Settings | None = None) -> str:
    """
    Build Redis URL with masked password for safe logging.

    Returns:
        str: Redis connection URL with masked password

    Example:
        >>> url = get_redis_url_masked()
        >>> # Returns: "redis://:****@localhost:6379/0"
    """
    config = config or settings
    if config.redis_password:
        return f"redis://:****@{config.redis_host}:{config.redis_port}/{config.redis_db}"
    return f"redis://{config.redis_host}:{config.redis_port}/{config.redis_db}"
