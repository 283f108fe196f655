"""
S3 object storage for selfie images using aioboto3.
"""
import os
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import aioboto3
from botocore.exceptions import ClientError, NoCredentialsError

from app.core.exceptions import StorageError
from app.core.logging import get_logger
from app.domain.interfaces.storage import ObjectStorage, StorageCategory, UploadResult

logger = get_logger(__name__)


class S3StorageService(ObjectStorage):
    """Object storage backed by an S3 bucket, one key prefix per category."""

    def __init__(
        self,
        bucket_name: str,
        region_name: str = "us-east-1",
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        session: Optional[aioboto3.Session] = None,
    ):
        """Store configuration; clients are opened per operation."""
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self._session = session or aioboto3.Session()

    @asynccontextmanager
    async def _get_client(self) -> AsyncGenerator[Any, None]:
        """Async context manager yielding an S3 client."""
        client_args = {"region_name": self.region_name}
        if self.access_key_id and self.secret_access_key:
            logger.debug("Using explicit AWS credentials from config for aioboto3")
            client_args["aws_access_key_id"] = self.access_key_id
            client_args["aws_secret_access_key"] = self.secret_access_key

        try:
            async with self._session.client("s3", **client_args) as s3:
                yield s3
        except NoCredentialsError as e:
            logger.error("AWS credentials not found for S3", error=str(e))
            raise StorageError("AWS credentials not found or configured correctly.") from e

    @staticmethod
    def build_key(suggested_name: str, category: str) -> str:
        """Generate a unique key, keeping only the extension of the suggested name."""
        _, ext = os.path.splitext(suggested_name)
        return f"{category}/{uuid.uuid4()}{ext.lower() or '.jpg'}"

    async def upload(self, data: bytes, suggested_name: str, category: StorageCategory) -> UploadResult:
        """
        Upload bytes to S3 asynchronously.

        Args:
            data: Object content
            suggested_name: Original filename, used for the extension only
            category: Key prefix (bucket category)

        Returns:
            UploadResult with the generated key

        Raises:
            StorageError: If the upload fails
        """
        key = self.build_key(suggested_name, category)
        try:
            async with self._get_client() as s3:
                await s3.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=data,
                    ContentType="image/jpeg",
                )
        except StorageError:
            raise
        except ClientError as e:
            logger.error("Failed to upload file to S3 due to client error",
                         key=key, error=str(e), exc_info=True)
            raise StorageError(f"Failed to upload file '{key}' to S3: {e}") from e
        except Exception as e:
            logger.error("Unexpected error uploading file to S3",
                         key=key, error=str(e), exc_info=True)
            raise StorageError(f"Unexpected error uploading file '{key}': {e}") from e

        logger.info("Successfully uploaded file to S3", key=key, bucket=self.bucket_name)
        return UploadResult(
            key=key,
            url=f"https://{self.bucket_name}.s3.{self.region_name}.amazonaws.com/{key}",
            category=category,
        )

    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """
        Generate a presigned GET URL asynchronously.

        Args:
            key: S3 object key
            expires_in: URL expiration time in seconds

        Returns:
            Presigned URL for the object
        """
        try:
            async with self._get_client() as s3:
                url = await s3.generate_presigned_url(
                    "get_object",
                    Params={"Bucket": self.bucket_name, "Key": key},
                    ExpiresIn=expires_in
                )
        except StorageError:
            raise
        except ClientError as e:
            logger.error("Failed to generate presigned URL due to client error",
                         key=key, error=str(e), exc_info=True)
            raise StorageError(f"Failed to generate presigned URL for '{key}': {e}") from e
        except Exception as e:
            logger.error("Unexpected error generating presigned URL",
                         key=key, error=str(e), exc_info=True)
            raise StorageError(f"Unexpected error generating presigned URL for '{key}': {e}") from e

        logger.debug("Generated presigned URL", key=key, bucket=self.bucket_name)
        return url
