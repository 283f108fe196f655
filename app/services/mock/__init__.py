"""Mock service implementations selected with USE_MOCK_SERVICES."""
from .face_recognition import MockFaceRecognitionProvider
from .storage import InMemoryStorageService

__all__ = ["InMemoryStorageService", "MockFaceRecognitionProvider"]
