"""Domain entities package."""
from .selfie import GUEST_SELFIE_ACCESS_MODE, CachedSelfie, GalleryPolicy

__all__ = ["GUEST_SELFIE_ACCESS_MODE", "CachedSelfie", "GalleryPolicy"]
