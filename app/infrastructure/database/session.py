"""Database engine and session factory management."""
from typing import Tuple

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)

from app.core.config import Settings
from app.core.logging import get_logger
from app.infrastructure.database.models import Base

logger = get_logger(__name__)


def create_engine_and_factory(
    config: Settings
) -> Tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Create the async engine and session factory for the configured database.

    Args:
        config: Application settings

    Returns:
        Tuple of the engine and its session factory
    """
    url = config.database_url
    engine_kwargs = {"echo": config.DEBUG}
    if not url.startswith("sqlite"):
        engine_kwargs.update(
            pool_size=config.POSTGRES_POOL_SIZE,
            max_overflow=config.POSTGRES_MAX_OVERFLOW,
            pool_timeout=config.POSTGRES_POOL_TIMEOUT,
            pool_pre_ping=True,
        )

    engine = create_async_engine(url, **engine_kwargs)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )
    logger.info("Created database engine", dialect=engine.dialect.name)
    return engine, session_factory


async def create_schema(engine: AsyncEngine) -> None:
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured")
