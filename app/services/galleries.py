"""Database-backed gallery policy lookup and guest session issuing."""
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger, mask_mobile
from app.domain.entities.selfie import GalleryPolicy
from app.domain.interfaces.gallery import GalleryDirectory, GuestSessionIssuer
from app.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


class DatabaseGalleryDirectory(GalleryDirectory):
    """Reads gallery policy and photo membership from the relational store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_policy(self, gallery_id: str) -> Optional[GalleryPolicy]:
        async with UnitOfWork(self._session_factory) as uow:
            gallery = await uow.galleries.get(gallery_id)
            if gallery is None:
                return None
            return GalleryPolicy(
                gallery_id=gallery.id,
                name=gallery.name,
                selfie_matching_enabled=gallery.selfie_matching_enabled,
                guest_access_modes=set(gallery.access_modes or []),
                require_mobile_for_selfie=gallery.require_mobile_for_selfie,
            )

    async def list_photos(self, gallery_id: str) -> Dict[str, str]:
        async with UnitOfWork(self._session_factory) as uow:
            return await uow.galleries.photo_filenames(gallery_id)


class DatabaseGuestSessionIssuer(GuestSessionIssuer):
    """Creates guest rows whose session token grants gallery access."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create_session(
        self,
        gallery_id: str,
        matched_photo_ids: List[str],
        mobile_number: Optional[str] = None,
        selfie_key: Optional[str] = None,
    ) -> str:
        async with UnitOfWork(self._session_factory) as uow:
            guest = await uow.guests.create(
                gallery_id=gallery_id,
                matched_photo_ids=matched_photo_ids,
                mobile_number=mobile_number,
                selfie_s3_key=selfie_key,
            )
            token = guest.session_token

        logger.info(
            "Created guest session",
            gallery_id=gallery_id,
            mobile=mask_mobile(mobile_number),
            matched_count=len(matched_photo_ids),
        )
        return token
