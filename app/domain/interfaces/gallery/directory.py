"""Gallery and guest session collaborator interfaces."""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from ...entities.selfie import GalleryPolicy


class GalleryDirectory(ABC):
    """Read access to gallery policy and gallery photo membership."""

    @abstractmethod
    async def get_policy(self, gallery_id: str) -> Optional[GalleryPolicy]:
        """Return the gallery's selfie policy, or None if the gallery does not exist."""
        pass

    @abstractmethod
    async def list_photos(self, gallery_id: str) -> Dict[str, str]:
        """Return a mapping of photo id to filename for every photo in the gallery."""
        pass


class GuestSessionIssuer(ABC):
    """Creates guest sessions for galleries."""

    @abstractmethod
    async def create_session(
        self,
        gallery_id: str,
        matched_photo_ids: List[str],
        mobile_number: Optional[str] = None,
        selfie_key: Optional[str] = None,
    ) -> str:
        """Create a guest session and return its opaque token."""
        pass
