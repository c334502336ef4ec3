"""
Bot Initialization - Handlers Module.

Module: handlers.py
Registers all bot handlers.
"""

from aiogram import Dispatcher
from loguru import logger


def register_all_handlers(dp: Dispatcher) -> None:
    """Register all handlers in the correct order."""
    from bot.handlers import events

    # Single router: the core decides routing priority
    dp.include_router(events.router)

    logger.info("Handlers registered successfully")
