"""Selfie match result cache.

Stores face search results per gallery so repeat visitors do not trigger a
new provider call. Records are found by normalized mobile number, guest
session token or exact perceptual hash; every lookup returns the most
recently used record. All operations are scoped to one gallery.
"""
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger, mask_mobile
from app.domain.entities.selfie import CachedSelfie
from app.infrastructure.database.models import GuestSelfieFace
from app.infrastructure.database.unit_of_work import UnitOfWork

logger = get_logger(__name__)


def _to_entity(record: Optional[GuestSelfieFace]) -> Optional[CachedSelfie]:
    if record is None:
        return None
    return CachedSelfie.model_validate(record)


class SelfieCacheService:
    """Gallery-scoped store of previously computed selfie matches.

    Writes are append only; reuse comes from the lookup order the caller
    applies, not from upserts.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the cache.

        Args:
            session_factory: Factory producing database sessions
        """
        self._session_factory = session_factory

    async def lookup_by_mobile(self, gallery_id: str, mobile_number: str) -> Optional[CachedSelfie]:
        """Most recently used record for a gallery and normalized mobile number."""
        async with UnitOfWork(self._session_factory) as uow:
            record = await uow.selfie_faces.latest_by_mobile(gallery_id, mobile_number)
            return _to_entity(record)

    async def lookup_by_session_token(self, gallery_id: str, session_token: str) -> Optional[CachedSelfie]:
        """Most recently used record for a gallery and guest session token."""
        async with UnitOfWork(self._session_factory) as uow:
            record = await uow.selfie_faces.latest_by_session_token(gallery_id, session_token)
            return _to_entity(record)

    async def lookup_by_hash(self, gallery_id: str, image_hash: str) -> Optional[CachedSelfie]:
        """Most recently used record for a gallery and exact image hash."""
        async with UnitOfWork(self._session_factory) as uow:
            record = await uow.selfie_faces.latest_by_hash(gallery_id, image_hash)
            return _to_entity(record)

    async def store(
        self,
        gallery_id: str,
        image_hash: str,
        face_id: str,
        matched_photo_ids: List[str],
        mobile_number: Optional[str] = None,
        session_token: Optional[str] = None,
        selfie_key: Optional[str] = None,
    ) -> CachedSelfie:
        """Insert a new cache record without deduplicating against existing ones.

        Args:
            gallery_id: Owning gallery
            image_hash: Perceptual hash of the normalized selfie
            face_id: Best matching provider face id or a no-match sentinel
            matched_photo_ids: Matched photos of this gallery, best first
            mobile_number: Normalized mobile number
            session_token: Guest session token
            selfie_key: Storage key of the uploaded selfie

        Returns:
            CachedSelfie: The stored record
        """
        async with UnitOfWork(self._session_factory) as uow:
            record = await uow.selfie_faces.create(
                gallery_id=gallery_id,
                image_hash=image_hash,
                face_id=face_id,
                matched_photo_ids=matched_photo_ids,
                mobile_number=mobile_number,
                guest_session_token=session_token,
                selfie_s3_key=selfie_key,
            )
            cached = _to_entity(record)

        logger.info(
            "Cached selfie match result",
            gallery_id=gallery_id,
            image_hash=image_hash,
            face_id=face_id,
            matched_count=len(matched_photo_ids),
        )
        return cached

    async def touch(self, record_id: str) -> None:
        """Mark a record as just used."""
        async with UnitOfWork(self._session_factory) as uow:
            updated = await uow.selfie_faces.touch(record_id)
        if not updated:
            logger.warning("Touched a missing cache record", record_id=record_id)

    async def invalidate_mobile(self, gallery_id: str, mobile_number: str) -> int:
        """Delete one guest's mobile-keyed records for a gallery.

        Returns:
            int: Number of deleted records
        """
        async with UnitOfWork(self._session_factory) as uow:
            deleted = await uow.selfie_faces.delete_by_mobile(gallery_id, mobile_number)
        logger.info(
            "Invalidated cached selfie",
            gallery_id=gallery_id,
            mobile=mask_mobile(mobile_number),
            deleted=deleted,
        )
        return deleted
