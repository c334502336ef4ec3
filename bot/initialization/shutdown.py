"""
Bot Initialization - Shutdown Module.

Module: shutdown.py
Handles graceful shutdown of the bot.
Closes the payments API client, Redis and database connections.
"""

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from app.services.payments_api import PaymentsAPI


async def shutdown_handler(api: PaymentsAPI | None, redis_client: Redis | None) -> None:
    """Handle graceful shutdown."""
    logger.info("Graceful shutdown initiated...")

    if api is not None:
        await api.close()
        logger.info("Payments API client closed")

    if redis_client is not None:
        try:
            await redis_client.aclose()
            logger.info("Redis connection closed")
        except RedisError as e:
            logger.warning(f"Error closing Redis: {e}")

    # Close database connections
    try:
        from app.config.database import engine
        await engine.dispose()
        logger.info("Database connections closed")
    except SQLAlchemyError as e:
        logger.warning(f"Error closing database: {e}")

    logger.info("Graceful shutdown complete")
