"""Service container for dependency injection."""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.core.config import Settings
from app.core.exceptions import ServiceNotInitializedError
from app.core.logging import get_logger
from app.domain.interfaces.gallery import GalleryDirectory, GuestSessionIssuer
from app.domain.interfaces.recognition import FaceRecognitionProvider
from app.domain.interfaces.storage import ObjectStorage
from app.infrastructure.database.session import create_engine_and_factory, create_schema
from app.services.aws.rekognition import RekognitionFaceProvider
from app.services.aws.s3 import S3StorageService
from app.services.face_indexing import FaceIndexingService
from app.services.galleries import DatabaseGalleryDirectory, DatabaseGuestSessionIssuer
from app.services.hashing import PerceptualHasher
from app.services.mock import InMemoryStorageService, MockFaceRecognitionProvider
from app.services.rate_limit import SelfieRateLimiter
from app.services.selfie_cache import SelfieCacheService
from app.services.selfie_matching import SelfieMatchingOptions, SelfieMatchingService

logger = get_logger(__name__)


class ServiceContainer:
    """Container for application services.

    Built once at startup from the settings, which name the concrete storage
    and face provider implementations. Services receive their collaborators
    through their constructors.

    Example:
        ```python
        container = ServiceContainer(settings)
        await container.initialize()

        matching = container.selfie_matching_service
        ```
    """

    def __init__(
        self,
        config: Settings,
        storage: Optional[ObjectStorage] = None,
        face_provider: Optional[FaceRecognitionProvider] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    ) -> None:
        """Create an empty container.

        Args:
            config: Application settings
            storage: Object storage to use instead of the configured one
            face_provider: Face provider to use instead of the configured one
            session_factory: Session factory to use instead of creating an engine
        """
        self.config = config
        self.engine: Optional[AsyncEngine] = None
        self.session_factory = session_factory
        self.storage = storage
        self.face_provider = face_provider
        self.hasher: Optional[PerceptualHasher] = None

        self.gallery_directory: Optional[GalleryDirectory] = None
        self.guest_sessions: Optional[GuestSessionIssuer] = None
        self.rate_limiter: Optional[SelfieRateLimiter] = None
        self.selfie_cache: Optional[SelfieCacheService] = None
        self._selfie_matching_service: Optional[SelfieMatchingService] = None
        self._face_indexing_service: Optional[FaceIndexingService] = None

    @property
    def selfie_matching_service(self) -> SelfieMatchingService:
        if self._selfie_matching_service is None:
            raise ServiceNotInitializedError("Selfie matching service not initialized")
        return self._selfie_matching_service

    @property
    def face_indexing_service(self) -> FaceIndexingService:
        if self._face_indexing_service is None:
            raise ServiceNotInitializedError("Face indexing service not initialized")
        return self._face_indexing_service

    async def initialize(self) -> None:
        """Initialize all services in the correct order."""
        config = self.config

        if self.session_factory is None:
            self.engine, self.session_factory = create_engine_and_factory(config)
            if config.DATABASE_AUTO_CREATE:
                await create_schema(self.engine)

        self.hasher = PerceptualHasher()

        if self.storage is None:
            self.storage = self._build_storage()
        if self.face_provider is None:
            self.face_provider = self._build_face_provider()

        self.gallery_directory = DatabaseGalleryDirectory(self.session_factory)
        self.guest_sessions = DatabaseGuestSessionIssuer(self.session_factory)
        self.rate_limiter = SelfieRateLimiter(
            self.session_factory,
            max_attempts=config.RATE_LIMIT_MAX_ATTEMPTS,
            window_seconds=config.RATE_LIMIT_WINDOW_SECONDS,
            unavailable_retry_seconds=config.RATE_LIMIT_UNAVAILABLE_RETRY_SECONDS,
        )
        self.selfie_cache = SelfieCacheService(self.session_factory)

        self._selfie_matching_service = SelfieMatchingService(
            gallery_directory=self.gallery_directory,
            rate_limiter=self.rate_limiter,
            selfie_cache=self.selfie_cache,
            storage=self.storage,
            face_provider=self.face_provider,
            guest_sessions=self.guest_sessions,
            hasher=self.hasher,
            options=SelfieMatchingOptions.from_settings(config),
        )
        self._face_indexing_service = FaceIndexingService(
            face_provider=self.face_provider,
            gallery_directory=self.gallery_directory,
            max_retries=config.INDEXING_MAX_RETRIES,
            retry_base_delay=config.INDEXING_RETRY_BASE_DELAY,
            timeout_seconds=config.PROVIDER_TIMEOUT_SECONDS,
        )
        logger.info(
            "Initialized service container",
            storage=type(self.storage).__name__,
            face_provider=self.face_provider.provider_name,
        )

    def _build_storage(self) -> ObjectStorage:
        if self.config.USE_MOCK_SERVICES:
            return InMemoryStorageService()
        return S3StorageService(
            bucket_name=self.config.AWS_S3_BUCKET,
            region_name=self.config.AWS_REGION,
            access_key_id=self.config.AWS_ACCESS_KEY_ID or None,
            secret_access_key=self.config.AWS_SECRET_ACCESS_KEY or None,
        )

    def _build_face_provider(self) -> FaceRecognitionProvider:
        if self.config.USE_MOCK_SERVICES:
            return MockFaceRecognitionProvider(self.hasher)
        return RekognitionFaceProvider(
            collection_id=self.config.REKOGNITION_COLLECTION_ID,
            region_name=self.config.AWS_REGION,
            access_key_id=self.config.AWS_ACCESS_KEY_ID or None,
            secret_access_key=self.config.AWS_SECRET_ACCESS_KEY or None,
            max_faces=self.config.REKOGNITION_MAX_FACES,
        )

    async def cleanup(self) -> None:
        """Cleanup all services in reverse order of initialization."""
        if self._face_indexing_service is not None:
            await self._face_indexing_service.shutdown()
        self._face_indexing_service = None
        self._selfie_matching_service = None

        if self.engine is not None:
            await self.engine.dispose()
            self.engine = None
