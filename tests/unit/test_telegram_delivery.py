"""
Unit tests for Telegram delivery.

Tests cover:
- Inline keyboards built from reply buttons
- Plain-text resend after a Markdown parse error
- Notifier results on blocked users, timeouts and API errors
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError

from app.messages import MENU_KEYBOARD, cancel_row, main_menu_row
from app.models.reply import Reply
from bot.keyboards.builders import main_menu_keyboard, reply_markup
from bot.utils.notifications import TelegramNotifier, send_reply, strip_markdown


def bad_request(message: str) -> TelegramBadRequest:
    return TelegramBadRequest(method=MagicMock(), message=message)


class TestKeyboards:
    """Test keyboard conversion."""

    def test_reply_without_buttons(self):
        assert reply_markup(Reply(text="hi")) is None

    def test_rows_are_preserved(self):
        markup = reply_markup(Reply(text="hi", buttons=[main_menu_row(), [], cancel_row()]))

        assert len(markup.inline_keyboard) == 2
        assert markup.inline_keyboard[0][0].callback_data == "main_menu"
        assert markup.inline_keyboard[1][0].callback_data == "cancel"

    def test_main_menu_keyboard(self):
        keyboard = main_menu_keyboard()

        assert [[b.text for b in row] for row in keyboard.keyboard] == MENU_KEYBOARD
        assert keyboard.resize_keyboard is True


class TestSendReply:
    """Test reply delivery."""

    @pytest.mark.asyncio
    async def test_sends_markdown(self):
        bot = AsyncMock()
        await send_reply(bot, 42, Reply(text="*bold*"))

        bot.send_message.assert_awaited_once()
        args, kwargs = bot.send_message.await_args
        assert args == (42, "*bold*")
        assert kwargs["parse_mode"] == "Markdown"

    @pytest.mark.asyncio
    async def test_parse_error_resends_plain(self):
        bot = AsyncMock()
        bot.send_message.side_effect = [bad_request("Bad Request: can't parse entities"), MagicMock()]

        await send_reply(bot, 42, Reply(text="*bold* user_name"))

        assert bot.send_message.await_count == 2
        args, kwargs = bot.send_message.await_args
        assert args == (42, "bold username")
        assert kwargs["parse_mode"] is None

    @pytest.mark.asyncio
    async def test_other_bad_request_raises(self):
        bot = AsyncMock()
        bot.send_message.side_effect = bad_request("Bad Request: chat not found")

        with pytest.raises(TelegramBadRequest):
            await send_reply(bot, 42, Reply(text="hi"))

    def test_strip_markdown(self):
        assert strip_markdown("*a* _b_ `c`") == "a b c"


class TestTelegramNotifier:
    """Test out-of-band notifications."""

    @pytest.mark.asyncio
    async def test_delivered(self):
        bot = AsyncMock()
        assert await TelegramNotifier(bot).notify("42", Reply(text="hi")) is True
        assert bot.send_message.await_args.args[0] == 42

    @pytest.mark.asyncio
    async def test_blocked_user(self):
        bot = AsyncMock()
        bot.send_message.side_effect = TelegramForbiddenError(
            method=MagicMock(), message="Forbidden: bot was blocked by the user"
        )
        assert await TelegramNotifier(bot).notify("42", Reply(text="hi")) is False

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def hang(*args, **kwargs):
            await asyncio.sleep(1)

        bot = AsyncMock()
        bot.send_message.side_effect = hang
        assert await TelegramNotifier(bot, timeout=0.01).notify("42", Reply(text="hi")) is False

    @pytest.mark.asyncio
    async def test_invalid_user_id(self):
        bot = AsyncMock()
        assert await TelegramNotifier(bot).notify("not-a-number", Reply(text="hi")) is False
        bot.send_message.assert_not_awaited()
