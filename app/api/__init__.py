"""API v1 router initialization."""
from fastapi import APIRouter

from .face import router as face_router

# Create v1 router
router = APIRouter()

# Include guest selfie endpoints
router.include_router(
    face_router,
    prefix="/face",
    tags=["face"]
)
