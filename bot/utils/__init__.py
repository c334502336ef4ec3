"""Bot utilities"""

# Delivery
from bot.utils.notifications import (
    TelegramNotifier,
    send_reply,
    strip_markdown,
)

__all__ = [
    # Delivery
    "TelegramNotifier",
    "send_reply",
    "strip_markdown",
]
