"""FastAPI dependency providers."""
from fastapi import Request

from app.core.config import Settings
from app.core.container import ServiceContainer
from app.core.exceptions import ServiceNotInitializedError
from app.services.face_indexing import FaceIndexingService
from app.services.selfie_matching import SelfieMatchingService


def get_container(request: Request) -> ServiceContainer:
    """Return the container built during application startup.

    Raises:
        ServiceNotInitializedError: If the application lifespan has not run
    """
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise ServiceNotInitializedError("Service container is not initialized")
    return container


def get_selfie_matching_service(request: Request) -> SelfieMatchingService:
    """Provide the selfie matching service."""
    return get_container(request).selfie_matching_service


def get_face_indexing_service(request: Request) -> FaceIndexingService:
    """Provide the background face indexing service."""
    return get_container(request).face_indexing_service


def get_settings(request: Request) -> Settings:
    """Provide the settings the container was built with."""
    return get_container(request).config
