"""Database repositories for the guest selfie matching service."""
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infrastructure.database.models import (
    Gallery,
    Guest,
    GuestSelfieFace,
    Photo,
    SelfieRateLimitAttempt,
    utcnow,
)


class GalleryRepository:
    """Repository for gallery and photo reads."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def get(self, gallery_id: str) -> Optional[Gallery]:
        """Get a gallery by ID, or None if it does not exist."""
        return await self._session.get(Gallery, gallery_id)

    async def photo_filenames(self, gallery_id: str) -> Dict[str, str]:
        """Map photo ID to filename for every photo in a gallery."""
        stmt = select(Photo.id, Photo.filename).where(Photo.gallery_id == gallery_id)
        result = await self._session.execute(stmt)
        return {photo_id: filename for photo_id, filename in result.all()}


class SelfieFaceRepository:
    """Repository for cached selfie match results."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def _latest(self, *criteria) -> Optional[GuestSelfieFace]:
        stmt = (
            select(GuestSelfieFace)
            .where(*criteria)
            .order_by(GuestSelfieFace.last_used_at.desc(), GuestSelfieFace.created_at.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def latest_by_mobile(self, gallery_id: str, mobile_number: str) -> Optional[GuestSelfieFace]:
        """Most recently used record for a gallery and normalized mobile number."""
        return await self._latest(
            GuestSelfieFace.gallery_id == gallery_id,
            GuestSelfieFace.mobile_number == mobile_number,
        )

    async def latest_by_session_token(self, gallery_id: str, token: str) -> Optional[GuestSelfieFace]:
        """Most recently used record for a gallery and guest session token."""
        return await self._latest(
            GuestSelfieFace.gallery_id == gallery_id,
            GuestSelfieFace.guest_session_token == token,
        )

    async def latest_by_hash(self, gallery_id: str, image_hash: str) -> Optional[GuestSelfieFace]:
        """Most recently used record for a gallery and exact image hash."""
        return await self._latest(
            GuestSelfieFace.gallery_id == gallery_id,
            GuestSelfieFace.image_hash == image_hash,
        )

    async def create(
        self,
        gallery_id: str,
        image_hash: str,
        face_id: str,
        matched_photo_ids: List[str],
        mobile_number: Optional[str] = None,
        guest_session_token: Optional[str] = None,
        selfie_s3_key: Optional[str] = None,
    ) -> GuestSelfieFace:
        """Insert a new cache record.

        Returns:
            GuestSelfieFace: Created record
        """
        now = utcnow()
        record = GuestSelfieFace(
            gallery_id=gallery_id,
            image_hash=image_hash,
            face_id=face_id,
            matched_photo_ids=list(matched_photo_ids),
            mobile_number=mobile_number,
            guest_session_token=guest_session_token,
            selfie_s3_key=selfie_s3_key,
            last_used_at=now,
            created_at=now,
        )
        self._session.add(record)
        await self._session.flush()
        return record

    async def touch(self, record_id: str, when: Optional[datetime] = None) -> bool:
        """Set last_used_at on a record.

        Returns:
            bool: Whether a record was updated
        """
        stmt = (
            update(GuestSelfieFace)
            .where(GuestSelfieFace.id == record_id)
            .values(last_used_at=when or utcnow())
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete_by_mobile(self, gallery_id: str, mobile_number: str) -> int:
        """Delete every record of a gallery for one mobile number."""
        stmt = delete(GuestSelfieFace).where(
            GuestSelfieFace.gallery_id == gallery_id,
            GuestSelfieFace.mobile_number == mobile_number,
        )
        result = await self._session.execute(stmt)
        return result.rowcount


class RateLimitAttemptRepository:
    """Repository for sliding window rate limit attempts."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def prune(self, identity_key: str, cutoff: datetime) -> int:
        """Delete attempts of a key that fell out of the window."""
        stmt = delete(SelfieRateLimitAttempt).where(
            SelfieRateLimitAttempt.identity_key == identity_key,
            SelfieRateLimitAttempt.attempted_at <= cutoff,
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def window_stats(self, identity_key: str, cutoff: datetime) -> Tuple[int, Optional[datetime]]:
        """Count attempts newer than cutoff and return the oldest of them."""
        stmt = select(
            func.count(SelfieRateLimitAttempt.id),
            func.min(SelfieRateLimitAttempt.attempted_at),
        ).where(
            SelfieRateLimitAttempt.identity_key == identity_key,
            SelfieRateLimitAttempt.attempted_at > cutoff,
        )
        result = await self._session.execute(stmt)
        count, oldest = result.one()
        return int(count or 0), oldest

    async def add(self, gallery_id: str, identity_key: str, attempted_at: datetime) -> SelfieRateLimitAttempt:
        """Record a new attempt."""
        attempt = SelfieRateLimitAttempt(
            gallery_id=gallery_id,
            identity_key=identity_key,
            attempted_at=attempted_at,
        )
        self._session.add(attempt)
        await self._session.flush()
        return attempt


class GuestRepository:
    """Repository for guest sessions."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository.

        Args:
            session: Database session
        """
        self._session = session

    async def create(
        self,
        gallery_id: str,
        matched_photo_ids: List[str],
        mobile_number: Optional[str] = None,
        selfie_s3_key: Optional[str] = None,
    ) -> Guest:
        """Create a guest session record."""
        guest = Guest(
            gallery_id=gallery_id,
            matched_photo_ids=list(matched_photo_ids),
            mobile_number=mobile_number,
            selfie_s3_key=selfie_s3_key,
        )
        self._session.add(guest)
        await self._session.flush()
        return guest
