"""Guest selfie access API endpoints."""
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from app.api.models.face import (
    MOBILE_MAX_LENGTH,
    MOBILE_MIN_LENGTH,
    CheckMobileResponse,
    GuestAccessResponse,
    IndexPhotoResponse,
    InvalidateSelfieResponse,
    MobileRequest,
)
from app.core.config import Settings
from app.core.exceptions import (
    ConfigurationDisabledError,
    GalleryNotFoundError,
    InvalidImageError,
    MissingIdentityError,
    PhotoNotFoundError,
    RateLimitedError,
    SelfieMatchError,
    StorageError,
)
from app.core.logging import get_logger
from app.domain.value_objects.rate_limit import RateLimitReason
from app.infrastructure.dependencies import (
    get_face_indexing_service,
    get_selfie_matching_service,
    get_settings,
)
from app.services.face_indexing import FaceIndexingService
from app.services.selfie_matching import SelfieMatchingService

logger = get_logger(__name__)
router = APIRouter(
    tags=["face"],
    responses={
        400: {"description": "Invalid request"},
        500: {"description": "Internal server error"}
    }
)


def _http_error(status_code: int, error: SelfieMatchError, headers: Optional[dict] = None) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail={"error": error.error_code, "message": error.message},
        headers=headers,
    )


async def _read_image(upload: UploadFile, max_bytes: int) -> bytes:
    if not (upload.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "INVALID_IMAGE", "message": "Only image files are allowed"},
        )
    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_CONTENT_TOO_LARGE,
            detail={"error": "FILE_TOO_LARGE", "message": f"Image exceeds {max_bytes} bytes"},
        )
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "INVALID_IMAGE", "message": "No selfie provided"},
        )
    return data


@router.post(
    "/guest-access",
    response_model=GuestAccessResponse,
    summary="Match a selfie and open a guest session",
    description=(
        "Matches a guest selfie against a gallery and returns a guest session for the "
        "matched photos. Previous results are reused by mobile number, session token "
        "or identical selfie before the face provider is called."
    ),
    responses={
        403: {"description": "Selfie matching or guest access disabled"},
        404: {"description": "Gallery not found"},
        413: {"description": "Selfie too large"},
        429: {"description": "Too many selfie attempts"},
        503: {"description": "Rate limiter or selfie storage unavailable"},
    },
)
async def guest_access(
    selfie: UploadFile = File(..., description="Selfie image"),
    gallery_id: uuid.UUID = Form(...),
    mobile_number: Optional[str] = Form(None, min_length=MOBILE_MIN_LENGTH, max_length=MOBILE_MAX_LENGTH),
    guest_session_token: Optional[uuid.UUID] = Form(None),
    service: SelfieMatchingService = Depends(get_selfie_matching_service),
    config: Settings = Depends(get_settings),
) -> GuestAccessResponse:
    """Match a selfie against a gallery and create a guest session.

    Raises:
        HTTPException: If the request is rejected or processing fails
    """
    image_bytes = await _read_image(selfie, config.MAX_SELFIE_BYTES)

    try:
        grant = await service.open_guest_session(
            gallery_id=str(gallery_id),
            selfie_bytes=image_bytes,
            mobile_number=mobile_number,
            session_token=str(guest_session_token) if guest_session_token else None,
        )
        return GuestAccessResponse.from_service_response(grant)

    except GalleryNotFoundError as e:
        raise _http_error(status.HTTP_404_NOT_FOUND, e)
    except ConfigurationDisabledError as e:
        logger.info("Selfie access refused", gallery_id=str(gallery_id), reason=e.message)
        raise _http_error(status.HTTP_403_FORBIDDEN, e)
    except MissingIdentityError as e:
        raise _http_error(status.HTTP_400_BAD_REQUEST, e)
    except InvalidImageError as e:
        logger.warning("Invalid selfie image", gallery_id=str(gallery_id), error=str(e))
        raise _http_error(status.HTTP_400_BAD_REQUEST, e)
    except RateLimitedError as e:
        headers = {"Retry-After": str(e.retry_after_seconds)}
        status_code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if e.reason == RateLimitReason.RATE_LIMITER_UNAVAILABLE.value
            else status.HTTP_429_TOO_MANY_REQUESTS
        )
        raise HTTPException(
            status_code=status_code,
            detail={"error": e.reason, "message": e.message, "retry_after": e.retry_after_seconds},
            headers=headers,
        )
    except StorageError as e:
        logger.error("Selfie storage failed", gallery_id=str(gallery_id), error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": e.error_code, "message": "Selfie could not be stored, please retry"},
        )
    except Exception as e:
        logger.error("Unexpected error during guest selfie access",
                     error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred.")


@router.post(
    "/check-mobile",
    response_model=CheckMobileResponse,
    summary="Reuse a returning guest's selfie by mobile number",
)
async def check_mobile(
    request: MobileRequest,
    service: SelfieMatchingService = Depends(get_selfie_matching_service),
) -> CheckMobileResponse:
    """Open a guest session from a cached selfie without uploading a new one."""
    try:
        result = await service.check_mobile(str(request.gallery_id), request.mobile_number)
        return CheckMobileResponse.from_service_response(result)
    except Exception as e:
        logger.error("Unexpected error during mobile check", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred.")


@router.post(
    "/invalidate-selfie",
    response_model=InvalidateSelfieResponse,
    summary="Forget a guest's cached selfie for a gallery",
)
async def invalidate_selfie(
    request: MobileRequest,
    service: SelfieMatchingService = Depends(get_selfie_matching_service),
) -> InvalidateSelfieResponse:
    """Remove the mobile-keyed cached selfie so the guest can upload a new one."""
    try:
        deleted = await service.invalidate_selfie(str(request.gallery_id), request.mobile_number)
        return InvalidateSelfieResponse(success=True, deleted_count=deleted)
    except Exception as e:
        logger.error("Unexpected error during selfie invalidation", error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail="An unexpected error occurred.")


@router.post(
    "/index",
    response_model=IndexPhotoResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Index the faces of a gallery photo in the background",
    responses={404: {"description": "Photo not found in gallery"}},
)
async def index_photo(
    image: UploadFile = File(..., description="Photo image"),
    gallery_id: uuid.UUID = Form(...),
    photo_id: uuid.UUID = Form(...),
    service: FaceIndexingService = Depends(get_face_indexing_service),
    config: Settings = Depends(get_settings),
) -> IndexPhotoResponse:
    """Schedule face indexing for an uploaded gallery photo."""
    image_bytes = await _read_image(image, config.MAX_SELFIE_BYTES)
    try:
        await service.schedule(str(photo_id), str(gallery_id), image_bytes)
    except PhotoNotFoundError as e:
        raise _http_error(status.HTTP_404_NOT_FOUND, e)
    return IndexPhotoResponse(photo_id=str(photo_id), gallery_id=str(gallery_id))
