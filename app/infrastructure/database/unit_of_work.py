"""Unit of work pattern implementation."""
from types import TracebackType
from typing import Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.infrastructure.database.repositories import (
    GalleryRepository,
    GuestRepository,
    RateLimitAttemptRepository,
    SelfieFaceRepository,
)

logger = get_logger(__name__)


class UnitOfWork:
    """Unit of work for managing one database transaction and its repositories.

    Example:
        ```python
        async with UnitOfWork(session_factory) as uow:
            record = await uow.selfie_faces.latest_by_hash(gallery_id, image_hash)
        ```
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize unit of work.

        Args:
            session_factory: Factory producing database sessions
        """
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "UnitOfWork":
        """Open a session and bind the repositories to it.

        Returns:
            UnitOfWork: Self
        """
        self._session = self._session_factory()
        self.galleries = GalleryRepository(self._session)
        self.selfie_faces = SelfieFaceRepository(self._session)
        self.rate_limit_attempts = RateLimitAttemptRepository(self._session)
        self.guests = GuestRepository(self._session)
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        """Commit on success, roll back on error, always close the session.

        Args:
            exc_type: Exception type if an error occurred
            exc_val: Exception value if an error occurred
            exc_tb: Exception traceback if an error occurred
        """
        try:
            if exc_type is not None:
                logger.debug("Rolling back unit of work", error=str(exc_val))
                await self.rollback()
            else:
                await self.commit()
        finally:
            await self._session.close()
            self._session = None

    async def commit(self) -> None:
        """Commit the current transaction."""
        await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the current transaction."""
        await self._session.rollback()
