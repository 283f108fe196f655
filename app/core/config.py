"""Configuration settings for the guest selfie matching service."""
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        DATABASE_URL: Full SQLAlchemy async URL, overrides the POSTGRES_* parts
        USE_MOCK_SERVICES: Use in-memory storage and the deterministic face provider
        RATE_LIMIT_MAX_ATTEMPTS: Selfie attempts allowed per guest identity per window
        RATE_LIMIT_WINDOW_SECONDS: Length of the sliding rate limit window
        SIMILARITY_THRESHOLD: Minimum provider similarity for a match (0-100)
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        env_nested_delimiter="__"
    )

    # Core Settings
    PROJECT_NAME: str = "Guest Selfie Matching Service"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins(self) -> List[str]:
        """Get list of allowed origins."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Database Settings
    DATABASE_URL: Optional[str] = None
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "selfie_matching"
    POSTGRES_POOL_SIZE: int = 5
    POSTGRES_MAX_OVERFLOW: int = 10
    POSTGRES_POOL_TIMEOUT: int = 30
    DATABASE_AUTO_CREATE: bool = True

    @property
    def database_url(self) -> str:
        """Get the async SQLAlchemy database URL."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # Service selection
    USE_MOCK_SERVICES: bool = False

    # AWS Settings
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "ap-south-1"
    AWS_S3_BUCKET: str = ""
    REKOGNITION_COLLECTION_ID: str = "gallery-faces"
    REKOGNITION_MAX_FACES: int = 100

    # Face matching settings
    SIMILARITY_THRESHOLD: float = 80.0
    PROVIDER_TIMEOUT_SECONDS: float = 10.0

    # Selfie handling
    MAX_SELFIE_BYTES: int = 20 * 1024 * 1024  # 20MB
    SELFIE_MAX_DIMENSION: int = 1000
    SELFIE_JPEG_QUALITY: int = 80
    STORAGE_TIMEOUT_SECONDS: float = 15.0
    SIGNED_URL_EXPIRY_SECONDS: int = 3600

    # Rate limiting (sliding window per gallery + guest identity)
    RATE_LIMIT_MAX_ATTEMPTS: int = 10
    RATE_LIMIT_WINDOW_SECONDS: int = 3600
    RATE_LIMIT_UNAVAILABLE_RETRY_SECONDS: int = 30

    # Background face indexing
    INDEXING_MAX_RETRIES: int = 3
    INDEXING_RETRY_BASE_DELAY: float = 1.0

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

settings = Settings()
