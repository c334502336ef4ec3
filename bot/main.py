"""
Bot main entry point.

Initializes and runs the Telegram bot with aiogram 3.x.

Initialization is delegated to modular components in the
bot/initialization/ directory.
"""

import asyncio
import sys
from pathlib import Path

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.exceptions import TelegramAPIError
from loguru import logger


# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config.settings import settings  # noqa: E402
from bot.initialization.handlers import register_all_handlers  # noqa: E402
from bot.initialization.logging import setup_logging  # noqa: E402
from bot.initialization.middlewares import register_middlewares  # noqa: E402
from bot.initialization.services import initialize_conversation_service  # noqa: E402
from bot.initialization.shutdown import shutdown_handler  # noqa: E402
from bot.initialization.storage import setup_session_storage  # noqa: E402


async def main() -> None:
    """Initialize and run the bot."""
    setup_logging()

    # Session store and per-user lock (Redis, database or memory)
    session_service, redis_client = await setup_session_storage()

    # No default parse mode: each reply carries its own
    bot = Bot(token=settings.telegram_bot_token, default=DefaultBotProperties())

    conversation, api = initialize_conversation_service(bot, session_service)

    # Session state lives in the session store, not in aiogram FSM
    dp = Dispatcher()
    register_middlewares(dp, conversation)
    register_all_handlers(dp)

    # Test bot connection
    try:
        bot_info = await bot.get_me()
        logger.info(f"Bot connected: @{bot_info.username} (ID: {bot_info.id})")
        if not settings.telegram_bot_username:
            settings.telegram_bot_username = bot_info.username
    except TelegramAPIError as e:
        logger.error(f"Failed to connect to Telegram API: {e}")
        await shutdown_handler(api, redis_client)
        await bot.session.close()
        raise

    try:
        logger.info("Starting polling...")
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    except Exception as e:
        logger.exception(f"Polling error: {e}")
        raise
    finally:
        await shutdown_handler(api, redis_client)
        await bot.session.close()


def run() -> None:
    """Console entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception(f"Bot crashed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run()
