"""API specific selfie access models."""
import uuid
from typing import List, Optional

from pydantic import BaseModel, Field

from app.services.models import GuestAccessGrant, MobileCheckResult

MOBILE_MIN_LENGTH = 10
MOBILE_MAX_LENGTH = 15


class GallerySummary(BaseModel):
    """Gallery identification returned with a guest session."""
    id: str = Field(..., description="Gallery identifier")
    name: str = Field(..., description="Gallery display name")


class MatchedPhoto(BaseModel):
    """API model for a photo matched to the guest's selfie."""
    id: str = Field(..., description="Photo identifier")
    filename: Optional[str] = Field(None, description="Photo filename")


class GuestAccessResponse(BaseModel):
    """Response model for the /guest-access endpoint."""
    session_token: str = Field(..., description="Guest session token for gallery access")
    matched_count: int = Field(..., description="Number of matched photos", ge=0)
    matched_photos: List[MatchedPhoto] = Field(..., description="Matched photos, best match first")
    gallery: GallerySummary = Field(..., description="Gallery the session grants access to")
    selfie_url: Optional[str] = Field(None, description="Short-lived signed URL of the stored selfie")
    cache_hit: bool = Field(..., description="Whether a previous match result was reused")
    provider_degraded: bool = Field(
        False,
        description="True when face matching was unavailable and no matches could be computed"
    )

    @classmethod
    def from_service_response(cls, grant: GuestAccessGrant) -> "GuestAccessResponse":
        """Convert the service layer grant to the API response model."""
        match = grant.match
        return cls(
            session_token=grant.session_token,
            matched_count=match.matched_count,
            matched_photos=[
                MatchedPhoto(id=photo.id, filename=photo.filename)
                for photo in match.matched_photos
            ],
            gallery=GallerySummary(id=match.gallery_id, name=match.gallery_name),
            selfie_url=match.selfie_url,
            cache_hit=match.cache_hit,
            provider_degraded=match.provider_degraded,
        )


class MobileRequest(BaseModel):
    """Request model for the mobile based endpoints."""
    gallery_id: uuid.UUID = Field(..., description="Gallery identifier")
    mobile_number: str = Field(
        ...,
        description="Guest mobile number",
        min_length=MOBILE_MIN_LENGTH, max_length=MOBILE_MAX_LENGTH
    )


class CheckMobileResponse(BaseModel):
    """Response model for the /check-mobile endpoint."""
    found: bool = Field(..., description="Whether a cached selfie exists for this mobile number")
    session_token: Optional[str] = Field(None, description="Guest session token when found")
    matched_count: int = Field(0, description="Number of matched photos", ge=0)
    gallery: Optional[GallerySummary] = Field(None, description="Gallery when found")
    selfie_url: Optional[str] = Field(None, description="Short-lived signed URL of the stored selfie")

    @classmethod
    def from_service_response(cls, result: MobileCheckResult) -> "CheckMobileResponse":
        """Convert the service layer result to the API response model."""
        if not result.found:
            return cls(found=False)
        return cls(
            found=True,
            session_token=result.session_token,
            matched_count=result.matched_count,
            gallery=GallerySummary(id=result.gallery_id, name=result.gallery_name or ""),
            selfie_url=result.selfie_url,
        )


class InvalidateSelfieResponse(BaseModel):
    """Response model for the /invalidate-selfie endpoint."""
    success: bool = Field(..., description="Whether the request was processed")
    deleted_count: int = Field(..., description="Number of cached selfies removed", ge=0)


class IndexPhotoResponse(BaseModel):
    """Response model for the /index endpoint."""
    photo_id: str = Field(..., description="Photo scheduled for indexing")
    gallery_id: str = Field(..., description="Gallery of the photo")
    status: str = Field("scheduled", description="Indexing status")
