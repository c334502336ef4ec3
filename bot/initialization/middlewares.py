"""
Bot Initialization - Middlewares Module.

Module: middlewares.py
Registers all bot middlewares in the correct order.
Order is critical for proper request processing.
"""

from aiogram import Dispatcher
from loguru import logger

from app.services.conversation_service import ConversationService
from bot.middlewares.conversation import ConversationMiddleware
from bot.middlewares.error_handler import ErrorHandlerMiddleware


def register_middlewares(dp: Dispatcher, conversation: ConversationService) -> None:
    """
    Register all middlewares.

    Middleware order is critical:
    1. Error handler
    2. Conversation service injection

    Args:
        dp: Dispatcher instance
        conversation: Conversation service for handlers
    """
    dp.update.middleware(ErrorHandlerMiddleware())
    dp.update.middleware(ConversationMiddleware(conversation))

    logger.info("Middlewares registered successfully")
