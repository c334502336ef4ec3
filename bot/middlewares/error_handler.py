"""
Global Error Handler Middleware.

Catches unhandled exceptions and notifies admins.
Sends friendly message to users - never shows technical details.
"""

import html
import traceback
from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware, Bot
from aiogram.exceptions import TelegramAPIError
from aiogram.types import CallbackQuery, Message, TelegramObject, Update, User
from loguru import logger

from app.config.settings import Settings, settings
from app.messages import GENERAL_ERROR


class ErrorHandlerMiddleware(BaseMiddleware):
    """
    Global error handler middleware.

    - Logs all exceptions
    - Notifies the first admin with technical details
    - Sends friendly message to user (no technical info!)
    """

    def __init__(self, config: Settings | None = None) -> None:
        super().__init__()
        self.settings = config or settings

    def _get_user(self, event: TelegramObject) -> User | None:
        """Extract user from event."""
        if isinstance(event, Update):
            if event.message:
                return event.message.from_user
            if event.callback_query:
                return event.callback_query.from_user
        elif isinstance(event, (Message, CallbackQuery)):
            return event.from_user
        return None

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        """Execute middleware."""
        try:
            return await handler(event, data)
        except Exception as e:
            logger.exception(f"Unhandled exception: {e}")

            bot: Bot | None = data.get("bot")
            user = self._get_user(event)

            # 1. Friendly message to the user
            if bot and user:
                try:
                    await bot.send_message(chat_id=user.id, text=f"❌ {GENERAL_ERROR}")
                except TelegramAPIError as user_notify_error:
                    logger.warning(f"Failed to notify user: {user_notify_error}")

            # 2. Technical summary to the first admin only (to avoid spam)
            admin_ids = self.settings.get_admin_ids()
            if bot and admin_ids:
                user_info = "Unknown"
                if user:
                    user_info = f"@{user.username}" if user.username else f"ID: {user.id}"
                error_trace = html.escape(traceback.format_exc()[-800:])
                error_msg = html.escape(str(e)[:200])
                text = (
                    f"🚨 <b>CRITICAL ERROR</b>\n\n"
                    f"👤 User: {html.escape(user_info)}\n"
                    f"❌ Exception: <code>{type(e).__name__}</code>\n"
                    f"📝 Message: <code>{error_msg}</code>\n\n"
                    f"<pre>{error_trace}</pre>"
                )
                try:
                    await bot.send_message(
                        chat_id=admin_ids[0],
                        text=text[:4096],
                        parse_mode="HTML",
                    )
                except TelegramAPIError as notify_error:
                    logger.error(f"Failed to notify admin: {notify_error}")

            # Return None to prevent crash
            return None
