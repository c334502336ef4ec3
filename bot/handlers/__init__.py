"""
Handlers.

Bot command, message and callback handlers.
"""

from bot.handlers import events


__all__ = ["events"]
