"""Face recognition value objects."""
from typing import Optional

from pydantic import BaseModel, Field


class BoundingBox(BaseModel):
    """Face bounding box in normalized (0-1) coordinates."""
    left: float = Field(..., description="Left coordinate of the bounding box")
    top: float = Field(..., description="Top coordinate of the bounding box")
    width: float = Field(..., description="Width of the bounding box")
    height: float = Field(..., description="Height of the bounding box")


class FaceMatch(BaseModel):
    """A photo matched by the face provider for a selfie."""
    photo_id: str = Field(..., description="Identifier of the matched photo")
    similarity: float = Field(..., description="Similarity score (0-100)", ge=0.0, le=100.0)
    matched_face_id: str = Field(..., description="Provider identifier of the matched indexed face")


class IndexedFace(BaseModel):
    """A face the provider indexed for a gallery photo."""
    external_face_id: str = Field(..., description="Provider-assigned face identifier")
    confidence: float = Field(..., description="Detection confidence (0-100)")
    bounding_box: Optional[BoundingBox] = Field(None, description="Face location in the photo")
