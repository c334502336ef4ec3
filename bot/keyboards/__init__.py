"""
Keyboards.

Telegram keyboards (reply and inline).

This module exports:
- Builder classes: Fluent keyboard builders
- Keyboard functions: Reply conversion and the persistent menu
"""

from bot.keyboards.builders import (
    InlineKeyboardBuilder,
    ReplyKeyboardBuilder,
    main_menu_keyboard,
    reply_markup,
)


__all__ = [
    "InlineKeyboardBuilder",
    "ReplyKeyboardBuilder",
    "main_menu_keyboard",
    "reply_markup",
]
