"""
Bot session model.

Stores the serialised conversation session of a chat user.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.utils.datetime_utils import utc_now


class BotSession(Base):
    """Bot session row - one per chat user identity."""

    __tablename__ = "bot_sessions"

    # Primary key
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # Session JSON blob
    state: Mapped[str] = mapped_column(Text, nullable=False)

    # Optimistic concurrency counter, bumped on every write
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<BotSession(user_id={self.user_id!r}, version={self.version})>"
