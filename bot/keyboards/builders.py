"""
Keyboard builder utilities.

Turns transport-neutral reply buttons into aiogram keyboards.
"""

from typing import Self

from aiogram.types import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    KeyboardButton,
    ReplyKeyboardMarkup,
)
from aiogram.utils.keyboard import (
    InlineKeyboardBuilder as AiogramInlineBuilder,
)
from aiogram.utils.keyboard import (
    ReplyKeyboardBuilder as AiogramReplyBuilder,
)

from app.messages import MENU_KEYBOARD
from app.models.reply import Button, Reply


class ReplyKeyboardBuilder:
    """
    Fluent builder for the persistent menu keyboard.

    Example:
        >>> keyboard = (
        ...     ReplyKeyboardBuilder()
        ...     .add_row("💰 Balance", "👛 Wallets")
        ...     .add_row("❓ Help")
        ...     .build()
        ... )
    """

    def __init__(self) -> None:
        self._builder = AiogramReplyBuilder()

    def add_row(self, *texts: str) -> Self:
        """
        Add keyword buttons in a single row.

        Args:
            *texts: Keywords sent as plain text when pressed

        Returns:
            Self for method chaining
        """
        self._builder.row(*(KeyboardButton(text=text) for text in texts))
        return self

    def build(self, resize: bool = True) -> ReplyKeyboardMarkup:
        return self._builder.as_markup(resize_keyboard=resize, is_persistent=True)


class InlineKeyboardBuilder:
    """Inline keyboard from rows of reply buttons."""

    def __init__(self) -> None:
        self._builder = AiogramInlineBuilder()

    def add_buttons(self, row: list[Button]) -> Self:
        """
        Add one row of reply buttons.

        Args:
            row: Buttons with their callback payloads

        Returns:
            Self for method chaining
        """
        self._builder.row(
            *(InlineKeyboardButton(text=item.text, callback_data=item.callback_data) for item in row)
        )
        return self

    def build(self) -> InlineKeyboardMarkup:
        return self._builder.as_markup()


def reply_markup(reply: Reply) -> InlineKeyboardMarkup | None:
    """
    Inline keyboard for a reply, or None if it has no buttons.

    Example:
        >>> await message.answer(reply.text, reply_markup=reply_markup(reply))
    """
    rows = [row for row in reply.buttons if row]
    if not rows:
        return None
    builder = InlineKeyboardBuilder()
    for row in rows:
        builder.add_buttons(row)
    return builder.build()


def main_menu_keyboard() -> ReplyKeyboardMarkup:
    """Persistent reply keyboard with the menu keywords."""
    builder = ReplyKeyboardBuilder()
    for row in MENU_KEYBOARD:
        builder.add_row(*row)
    return builder.build()
