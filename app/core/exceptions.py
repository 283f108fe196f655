"""Custom exceptions for the guest selfie matching service."""
from typing import Optional


class SelfieMatchError(Exception):
    """Base exception for selfie matching operations."""

    error_code: str = "SELFIE_MATCH_ERROR"

    def __init__(self, message: str, details: Optional[dict] = None):
        """
        Initialize selfie matching error.

        Args:
            message: Error description
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ServiceNotInitializedError(SelfieMatchError):
    """Raised when a dependency is requested before the container is ready."""
    error_code = "SERVICE_NOT_INITIALIZED"


class GalleryNotFoundError(SelfieMatchError):
    """Raised when the requested gallery does not exist."""
    error_code = "GALLERY_NOT_FOUND"


class ConfigurationDisabledError(SelfieMatchError):
    """Raised when selfie matching or guest selfie access is turned off for a gallery."""
    error_code = "FORBIDDEN"


class MissingIdentityError(SelfieMatchError):
    """Base for requests that lack a usable guest identity."""
    error_code = "MISSING_IDENTITY"


class MobileRequiredError(MissingIdentityError):
    """Raised when the gallery requires a mobile number and none was supplied."""
    error_code = "MOBILE_REQUIRED"


class InvalidGuestSessionError(MissingIdentityError):
    """Raised when neither a mobile number nor a session token was supplied."""
    error_code = "INVALID_GUEST_SESSION"


class RateLimitedError(SelfieMatchError):
    """Raised when the rate limiter denies a selfie attempt."""
    error_code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str,
        retry_after_seconds: int,
        reason: str = "RATE_LIMIT_EXCEEDED",
        details: Optional[dict] = None
    ):
        super().__init__(message, details)
        self.retry_after_seconds = retry_after_seconds
        self.reason = reason


class InvalidImageError(SelfieMatchError):
    """Raised when the provided image is invalid or cannot be processed."""
    error_code = "INVALID_IMAGE"


class NoFaceDetectedError(SelfieMatchError):
    """Raised by a face provider when no face is detected in the image."""
    error_code = "NO_FACE_DETECTED"


class FaceProviderError(SelfieMatchError):
    """Raised when the external face recognition provider fails."""
    error_code = "PROVIDER_ERROR"


class StorageError(SelfieMatchError):
    """Raised when object storage upload or signing fails."""
    error_code = "STORAGE_ERROR"


class PhotoNotFoundError(SelfieMatchError):
    """Raised when a photo does not belong to the given gallery."""
    error_code = "PHOTO_NOT_FOUND"
