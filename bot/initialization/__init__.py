"""
Bot Initialization Module.

This module contains all initialization logic split into focused modules:
- logging: Logger configuration
- services: Payments API client and conversation service wiring
- storage: Session store and per-user lock (memory, Redis or database)
- middlewares: Middleware registration
- handlers: Handler registration
- shutdown: Graceful shutdown handler
"""

__all__ = []
