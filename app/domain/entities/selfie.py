"""Core selfie matching domain entities."""
from datetime import datetime
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field

GUEST_SELFIE_ACCESS_MODE = "GUEST_SELFIE"


class GalleryPolicy(BaseModel):
    """Selfie access policy of a gallery."""
    gallery_id: str = Field(..., description="Gallery identifier")
    name: str = Field("", description="Gallery display name")
    selfie_matching_enabled: bool = Field(False, description="Whether selfie matching is turned on")
    guest_access_modes: Set[str] = Field(default_factory=set, description="Enabled guest access modes")
    require_mobile_for_selfie: bool = Field(False, description="Whether guests must give a mobile number")

    @property
    def allows_guest_selfie(self) -> bool:
        return GUEST_SELFIE_ACCESS_MODE in self.guest_access_modes


class CachedSelfie(BaseModel):
    """A previously computed selfie match result for a gallery."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Cache record identifier")
    gallery_id: str = Field(..., description="Owning gallery")
    image_hash: str = Field(..., description="16 hex character perceptual hash of the normalized selfie")
    face_id: str = Field(..., description="Best matching provider face id or a no-match sentinel")
    matched_photo_ids: List[str] = Field(default_factory=list, description="Matched photos, best first")
    mobile_number: Optional[str] = Field(None, description="Normalized mobile number")
    guest_session_token: Optional[str] = Field(None, description="Guest session token")
    selfie_s3_key: Optional[str] = Field(None, description="Storage key of the uploaded selfie")
    last_used_at: datetime = Field(..., description="Last time the record was reused")
    created_at: datetime = Field(..., description="Creation time")
