"""
Bot Initialization - Services Module.

Module: services.py
Validates environment variables and wires the conversation service.
"""

from aiogram import Bot
from loguru import logger

from app.config.settings import settings
from app.services.conversation_service import ConversationService
from app.services.payments_api import PaymentsAPI
from app.services.session_service import SessionService
from bot.utils.notifications import TelegramNotifier


def validate_environment() -> None:
    """Validate critical environment variables."""
    if not settings.telegram_bot_token or "your_" in settings.telegram_bot_token.lower():
        logger.error("TELEGRAM_BOT_TOKEN is not properly configured")
    if not settings.api_base_url.startswith(("http://", "https://")):
        logger.error(f"API_BASE_URL is not a valid URL: {settings.api_base_url!r}")
    if not settings.get_admin_ids():
        logger.warning("ADMIN_TELEGRAM_IDS is empty: admin panel and error reports are disabled")


def initialize_conversation_service(
    bot: Bot, session_service: SessionService
) -> tuple[ConversationService, PaymentsAPI]:
    """
    Build the conversation service around one shared payments API client.

    Returns:
        Tuple of (conversation_service, api_client)
    """
    validate_environment()
    api = PaymentsAPI(
        base_url=settings.api_base_url,
        timeout_seconds=settings.api_timeout_seconds,
    )
    conversation = ConversationService.build(
        settings=settings,
        session_service=session_service,
        auth_api=api,
        kyc_api=api,
        transfer_api=api,
        wallet_api=api,
        points_api=api,
        notifier=TelegramNotifier(bot),
    )
    logger.info("Conversation service initialized successfully")
    return conversation, api
