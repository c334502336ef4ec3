"""
Database configuration.

Async SQLAlchemy engine and session factory for the database session
backend.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from app.config.settings import settings
from app.models.base import Base


engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.database_echo,
    pool_pre_ping=True,
)

async_session_maker = async_sessionmaker(
    engine,
    expire_on_commit=False,
)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create missing tables (bot_sessions)."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
