"""Face recognition provider interface."""
from abc import ABC, abstractmethod
from typing import List

from ...value_objects.recognition import FaceMatch, IndexedFace


class FaceRecognitionProvider(ABC):
    """Interface for an external face recognition provider."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Human readable provider name."""
        pass

    @abstractmethod
    async def search_faces(
        self,
        image_bytes: bytes,
        gallery_id: str,
        threshold: float = 80.0,
    ) -> List[FaceMatch]:
        """
        Search indexed faces using a selfie.

        Args:
            image_bytes: Selfie image data
            gallery_id: Gallery scope of the search
            threshold: Minimum similarity (0-100)

        Returns:
            Matches sorted by descending similarity. Callers still filter the
            results to the gallery's photos.

        Raises:
            NoFaceDetectedError: If the selfie contains no detectable face
            FaceProviderError: If the provider call fails
        """
        pass

    @abstractmethod
    async def index_faces(
        self,
        image_bytes: bytes,
        photo_id: str,
        gallery_id: str,
    ) -> List[IndexedFace]:
        """
        Index the faces of a gallery photo so later searches can find it.

        Raises:
            FaceProviderError: If the provider call fails
        """
        pass
