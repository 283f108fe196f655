"""In-memory object storage for local development and tests."""
import asyncio
import os
import uuid
from typing import Dict

from app.core.exceptions import StorageError
from app.core.logging import get_logger
from app.domain.interfaces.storage import ObjectStorage, StorageCategory, UploadResult

logger = get_logger(__name__)


class InMemoryStorageService(ObjectStorage):
    """Keeps uploaded objects in a dictionary and hands out fake signed URLs."""

    def __init__(self, base_url: str = "http://localhost:8000/mock-storage") -> None:
        self.base_url = base_url.rstrip("/")
        self.objects: Dict[str, bytes] = {}
        self._lock = asyncio.Lock()

    async def upload(self, data: bytes, suggested_name: str, category: StorageCategory) -> UploadResult:
        _, ext = os.path.splitext(suggested_name)
        key = f"{category}/{uuid.uuid4()}{ext.lower() or '.jpg'}"
        async with self._lock:
            self.objects[key] = bytes(data)
        logger.debug("Stored object in memory", key=key, size=len(data))
        return UploadResult(key=key, url=f"{self.base_url}/{key}", category=category)

    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        if key not in self.objects:
            raise StorageError(f"File not found: {key}")
        return f"{self.base_url}/{key}?expires_in={expires_in}"
