"""
Middlewares.

Bot middlewares for request processing.
"""

from bot.middlewares.conversation import ConversationMiddleware
from bot.middlewares.error_handler import ErrorHandlerMiddleware


__all__ = [
    "ConversationMiddleware",
    "ErrorHandlerMiddleware",
]
