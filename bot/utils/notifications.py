"""
Notification utilities.

Delivery of replies through the bot, including out-of-band notifications
for users whose flow moved on while a transfer was being submitted.
"""

import asyncio

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest, TelegramForbiddenError
from aiogram.types import Message
from loguru import logger

from app.models.reply import Reply
from bot.keyboards.builders import reply_markup


# Seconds to wait for one Telegram send
TELEGRAM_TIMEOUT = 10.0


def strip_markdown(text: str) -> str:
    """Remove Markdown formatting from text."""
    result = text.replace("**", "").replace("*", "").replace("_", "")
    result = result.replace("`", "").replace("\\", "")
    return result


async def send_reply(bot: Bot, chat_id: int | str, reply: Reply) -> Message:
    """
    Send one reply with its inline keyboard.

    Texts that Telegram cannot parse as Markdown are resent as plain text.
    """
    markup = reply_markup(reply)
    try:
        return await bot.send_message(
            chat_id, reply.text, parse_mode=reply.parse_mode, reply_markup=markup
        )
    except TelegramBadRequest as e:
        if not reply.parse_mode or "can't parse entities" not in str(e):
            raise
        logger.warning(f"Markdown parse error for chat {chat_id}, resending plain: {e}")
        return await bot.send_message(
            chat_id, strip_markdown(reply.text), parse_mode=None, reply_markup=markup
        )


class TelegramNotifier:
    """Out-of-band delivery to a chat user."""

    def __init__(self, bot: Bot, timeout: float = TELEGRAM_TIMEOUT) -> None:
        self.bot = bot
        self.timeout = timeout

    async def notify(self, user_id: str, reply: Reply) -> bool:
        """
        Send a reply to a user outside of a request.

        Returns:
            True if sent successfully, False otherwise
        """
        try:
            await asyncio.wait_for(send_reply(self.bot, int(user_id), reply), timeout=self.timeout)
            return True
        except TelegramForbiddenError:
            logger.debug(f"User {user_id} blocked the bot")
            return False
        except TimeoutError:
            logger.warning(f"Timeout sending to {user_id}")
            return False
        except (TelegramAPIError, ValueError) as e:
            logger.debug(f"Failed to send to {user_id}: {e}")
            return False
