"""
Conversation middleware.

Injects the conversation service into handler data.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject

from app.services.conversation_service import ConversationService


class ConversationMiddleware(BaseMiddleware):
    """Provides `conversation` to handlers."""

    def __init__(self, conversation: ConversationService) -> None:
        """
        Initialize conversation middleware.

        Args:
            conversation: Service handling inbound events
        """
        super().__init__()
        self.conversation = conversation

    async def __call__(
        self,
        handler: Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: dict[str, Any],
    ) -> Any:
        data["conversation"] = self.conversation
        return await handler(event, data)
