"""Service-specific models.

This module contains models used by services that are independent of the API layer.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class CacheSource(str, Enum):
    """Which lookup produced a cache hit."""
    MOBILE = "mobile"
    SESSION = "session"
    HASH = "hash"


class MatchedPhoto(BaseModel):
    """A gallery photo matched to the guest's selfie."""
    id: str = Field(..., description="Photo identifier")
    filename: Optional[str] = Field(None, description="Photo filename")


class MatchResult(BaseModel):
    """Outcome of resolving a selfie against a gallery.

    An empty ``matched_photo_ids`` with ``provider_degraded=False`` means the
    provider found nobody; with ``provider_degraded=True`` it means the
    provider could not be asked and nothing was cached.
    """
    gallery_id: str = Field(..., description="Gallery the selfie was matched against")
    gallery_name: str = Field("", description="Gallery display name")
    mobile_number: Optional[str] = Field(None, description="Normalized mobile number")
    session_token: Optional[str] = Field(None, description="Client supplied guest session token")
    image_hash: str = Field(..., description="Perceptual hash of the normalized selfie")
    face_id: str = Field(..., description="Matched provider face id or a no-match sentinel")
    matched_photo_ids: List[str] = Field(default_factory=list, description="Matched photos, best first")
    matched_photos: List[MatchedPhoto] = Field(default_factory=list, description="Matched photo details")
    selfie_key: Optional[str] = Field(None, description="Storage key of the selfie")
    selfie_url: Optional[str] = Field(None, description="Short-lived signed selfie URL")
    cache_hit: bool = Field(False, description="Whether a cached result was reused")
    cache_source: Optional[CacheSource] = Field(None, description="Lookup that produced the hit")
    provider_degraded: bool = Field(False, description="Whether the face provider failed")

    @property
    def matched_count(self) -> int:
        return len(self.matched_photo_ids)


class GuestAccessGrant(BaseModel):
    """A guest session created from a selfie match."""
    session_token: str = Field(..., description="Opaque guest session token")
    match: MatchResult = Field(..., description="Underlying match result")


class MobileCheckResult(BaseModel):
    """Result of the returning-guest mobile lookup."""
    found: bool = Field(..., description="Whether a cached selfie exists for the mobile number")
    session_token: Optional[str] = Field(None, description="New guest session token")
    matched_photo_ids: List[str] = Field(default_factory=list, description="Cached matched photos")
    gallery_id: Optional[str] = Field(None, description="Gallery identifier")
    gallery_name: Optional[str] = Field(None, description="Gallery display name")
    selfie_url: Optional[str] = Field(None, description="Short-lived signed selfie URL")

    @property
    def matched_count(self) -> int:
        return len(self.matched_photo_ids)


def photo_details(photo_ids: List[str], filenames: Dict[str, str]) -> List[MatchedPhoto]:
    """Build matched photo details in match order."""
    return [MatchedPhoto(id=photo_id, filename=filenames.get(photo_id)) for photo_id in photo_ids]
