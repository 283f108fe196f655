"""Service interfaces package."""
from .gallery import GalleryDirectory, GuestSessionIssuer
from .recognition import FaceRecognitionProvider
from .storage import ObjectStorage, UploadResult

__all__ = [
    "FaceRecognitionProvider",
    "GalleryDirectory",
    "GuestSessionIssuer",
    "ObjectStorage",
    "UploadResult",
]
