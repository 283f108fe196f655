"""Gallery interfaces."""
from .directory import GalleryDirectory, GuestSessionIssuer

__all__ = ["GalleryDirectory", "GuestSessionIssuer"]
