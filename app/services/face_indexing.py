"""Background face indexing of gallery photos.

Indexing runs as detached asyncio tasks so photo uploads never wait on the
face provider. A photo becomes matchable once its task succeeds; there is no
guarantee a freshly uploaded photo is searchable right away.
"""
import asyncio
from typing import List, Optional, Set

from app.core.exceptions import FaceProviderError, PhotoNotFoundError
from app.core.logging import get_logger
from app.domain.interfaces.gallery import GalleryDirectory
from app.domain.interfaces.recognition import FaceRecognitionProvider
from app.domain.value_objects.recognition import IndexedFace

logger = get_logger(__name__)


class FaceIndexingService:
    """Schedules and tracks face indexing tasks.

    Example:
        ```python
        indexing = FaceIndexingService(provider, directory, max_retries=3)
        await indexing.schedule(photo_id, gallery_id, image_bytes)
        ...
        await indexing.shutdown()
        ```
    """

    def __init__(
        self,
        face_provider: FaceRecognitionProvider,
        gallery_directory: GalleryDirectory,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        timeout_seconds: float = 30.0,
    ) -> None:
        """Initialize the indexing service.

        Args:
            face_provider: Provider that indexes photo faces
            gallery_directory: Used to check the photo belongs to the gallery
            max_retries: Retries after the first failed attempt
            retry_base_delay: First backoff delay in seconds, doubled per retry
            timeout_seconds: Bound on a single provider call
        """
        self._face_provider = face_provider
        self._gallery_directory = gallery_directory
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.timeout_seconds = timeout_seconds
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of indexing tasks still running."""
        return len(self._tasks)

    async def schedule(self, photo_id: str, gallery_id: str, image_bytes: bytes) -> asyncio.Task:
        """Start indexing a photo in the background.

        Raises:
            PhotoNotFoundError: If the photo is not part of the gallery
        """
        photos = await self._gallery_directory.list_photos(gallery_id)
        if photo_id not in photos:
            raise PhotoNotFoundError(
                "Photo not found in gallery",
                details={"photo_id": photo_id, "gallery_id": gallery_id}
            )

        task = asyncio.create_task(
            self._index_with_retries(photo_id, gallery_id, image_bytes),
            name=f"index-faces-{photo_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.info("Scheduled face indexing", photo_id=photo_id, gallery_id=gallery_id)
        return task

    async def _index_with_retries(
        self,
        photo_id: str,
        gallery_id: str,
        image_bytes: bytes,
    ) -> Optional[List[IndexedFace]]:
        attempt = 0
        while True:
            try:
                faces = await asyncio.wait_for(
                    self._face_provider.index_faces(image_bytes, photo_id, gallery_id),
                    timeout=self.timeout_seconds,
                )
                logger.info(
                    "Indexed photo faces",
                    photo_id=photo_id,
                    gallery_id=gallery_id,
                    faces=len(faces),
                    attempts=attempt + 1,
                )
                return faces
            except (FaceProviderError, asyncio.TimeoutError) as e:
                if attempt >= self.max_retries:
                    logger.error(
                        "Giving up on face indexing",
                        photo_id=photo_id,
                        gallery_id=gallery_id,
                        attempts=attempt + 1,
                        error=str(e) or type(e).__name__,
                    )
                    return None
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Face indexing failed, retrying",
                    photo_id=photo_id,
                    attempt=attempt + 1,
                    retry_in=delay,
                    error=str(e) or type(e).__name__,
                )
                attempt += 1
                await asyncio.sleep(delay)
            except Exception as e:
                logger.error(
                    "Unexpected error during face indexing",
                    photo_id=photo_id,
                    gallery_id=gallery_id,
                    error=str(e),
                    exc_info=True
                )
                return None

    async def drain(self) -> None:
        """Wait for every scheduled task to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel outstanding tasks and wait for them to stop."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            logger.info("Cancelling pending face indexing tasks", count=len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)
