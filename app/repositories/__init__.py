"""
Repositories.

Persistence of conversation sessions.
"""

from app.repositories.session_repository import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
    SqlSessionStore,
    build_session_store,
)


__all__ = [
    "InMemorySessionStore",
    "RedisSessionStore",
    "SessionStore",
    "SqlSessionStore",
    "build_session_store",
]
