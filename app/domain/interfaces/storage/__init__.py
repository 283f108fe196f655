"""Storage interfaces."""
from .object_storage import ObjectStorage, StorageCategory, UploadResult

__all__ = ["ObjectStorage", "StorageCategory", "UploadResult"]
