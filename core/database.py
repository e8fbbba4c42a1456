"""
Database session management with SQLAlchemy async
"""

from functools import lru_cache

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine; connections are opened per session."""
    return create_async_engine(
        database_url,
        echo=echo,
        poolclass=NullPool,
        future=True
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    return create_engine(settings.DATABASE_URL, echo=settings.ENVIRONMENT == "development")


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker:
    return create_session_factory(get_engine())


async def create_all_tables(engine: AsyncEngine) -> None:
    # Importing the package registers every table on Base.metadata
    import models
    async with engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)
    logger.info("Database tables created")


def dialect_insert(session: AsyncSession, model):
    """
    ``INSERT`` construct for the session's dialect, supporting
    ``on_conflict_do_nothing``/``on_conflict_do_update``.
    """
    if session.bind.dialect.name == "sqlite":
        return sqlite.insert(model)
    return postgresql.insert(model)
