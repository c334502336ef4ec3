"""
Event handlers.

Decodes Telegram updates into inbound events for the conversation service
and delivers the replies. All conversation logic lives in the core; this
router only translates.
"""

from typing import Any

from aiogram import Bot, F, Router
from aiogram.filters import CommandStart
from aiogram.types import CallbackQuery, Message
from loguru import logger

from app.models.reply import Reply
from app.services.conversation_service import ConversationService
from app.services.dispatcher import CallbackEvent, CommandEvent, InboundEvent, TextEvent
from bot.keyboards.builders import main_menu_keyboard
from bot.utils.notifications import send_reply


router = Router(name="events")


async def deliver(bot: Bot, chat_id: int, replies: list[Reply]) -> None:
    """Send replies in order."""
    for reply in replies:
        await send_reply(bot, chat_id, reply)


async def handle_event(
    conversation: ConversationService, bot: Bot, chat_id: int, event: InboundEvent
) -> None:
    replies = await conversation.handle(event)
    logger.debug(f"{type(event).__name__} of user {event.user_id}: {len(replies)} replies")
    await deliver(bot, chat_id, replies)


@router.message(CommandStart())
async def cmd_start(
    message: Message,
    bot: Bot,
    conversation: ConversationService,
    **data: Any,
) -> None:
    """
    Handle /start command.

    Installs the persistent menu keyboard before the welcome reply.
    """
    await message.answer("⌨️ Use the menu below at any time.", reply_markup=main_menu_keyboard())
    await handle_event(
        conversation,
        bot,
        message.chat.id,
        CommandEvent(user_id=str(message.from_user.id), command=message.text or "/start"),
    )


@router.message(F.text.startswith("/"))
async def on_command(
    message: Message,
    bot: Bot,
    conversation: ConversationService,
    **data: Any,
) -> None:
    await handle_event(
        conversation,
        bot,
        message.chat.id,
        CommandEvent(user_id=str(message.from_user.id), command=message.text),
    )


@router.message(F.text)
async def on_text(
    message: Message,
    bot: Bot,
    conversation: ConversationService,
    **data: Any,
) -> None:
    await handle_event(
        conversation,
        bot,
        message.chat.id,
        TextEvent(user_id=str(message.from_user.id), text=message.text),
    )


@router.callback_query()
async def on_callback(
    callback: CallbackQuery,
    bot: Bot,
    conversation: ConversationService,
    **data: Any,
) -> None:
    """
    Handle inline button presses.

    The callback is answered first so the client stops its spinner even if
    the event waits for the session lock.
    """
    await callback.answer()
    chat_id = callback.message.chat.id if callback.message else callback.from_user.id
    await handle_event(
        conversation,
        bot,
        chat_id,
        CallbackEvent(user_id=str(callback.from_user.id), data=callback.data or ""),
    )
