"""Object storage interface for selfie images."""
from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel, Field

StorageCategory = Literal["selfies"]


class UploadResult(BaseModel):
    """Result of an object storage upload."""
    key: str = Field(..., description="Storage key of the uploaded object")
    url: str = Field(..., description="Unsigned location of the object")
    category: str = Field(..., description="Bucket category the object was stored under")


class ObjectStorage(ABC):
    """Interface for durable object storage."""

    @abstractmethod
    async def upload(self, data: bytes, suggested_name: str, category: StorageCategory) -> UploadResult:
        """
        Upload bytes to storage.

        Args:
            data: Object content
            suggested_name: Original filename, used for the extension only
            category: Target bucket category

        Returns:
            UploadResult with the generated storage key

        Raises:
            StorageError: If the upload fails
        """
        pass

    @abstractmethod
    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """
        Generate a short-lived signed URL for an object.

        Raises:
            StorageError: If signing fails
        """
        pass
