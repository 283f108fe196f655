"""
AWS Rekognition face recognition provider using aioboto3.

Gallery photos are indexed into a single collection with the photo ID as
ExternalImageId; searches return every face above the threshold and the
caller narrows them down to the gallery's photos.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, List, Optional

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.exceptions import FaceProviderError, NoFaceDetectedError
from app.core.logging import get_logger
from app.domain.interfaces.recognition import FaceRecognitionProvider
from app.domain.value_objects.recognition import BoundingBox, FaceMatch, IndexedFace

logger = get_logger(__name__)


class RekognitionFaceProvider(FaceRecognitionProvider):
    """Face search and indexing through an AWS Rekognition collection."""

    def __init__(
        self,
        collection_id: str,
        region_name: str = "us-east-1",
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        max_faces: int = 100,
        session: Optional[aioboto3.Session] = None,
    ) -> None:
        """Store configuration; the collection is created on first use."""
        self.collection_id = collection_id
        self.region_name = region_name
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.max_faces = max_faces
        self._session = session or aioboto3.Session()
        self._collection_ready = False
        self._collection_lock = asyncio.Lock()

    @property
    def provider_name(self) -> str:
        return "AWS Rekognition"

    @asynccontextmanager
    async def _get_client(self) -> AsyncGenerator[Any, None]:
        client_args = {"region_name": self.region_name}
        if self.access_key_id and self.secret_access_key:
            client_args["aws_access_key_id"] = self.access_key_id
            client_args["aws_secret_access_key"] = self.secret_access_key
        async with self._session.client("rekognition", **client_args) as client:
            yield client

    async def _ensure_collection(self, client: Any) -> None:
        if self._collection_ready:
            return
        async with self._collection_lock:
            if self._collection_ready:
                return
            try:
                await client.create_collection(CollectionId=self.collection_id)
                logger.info("Created Rekognition collection", collection_id=self.collection_id)
            except ClientError as e:
                if e.response.get("Error", {}).get("Code") != "ResourceAlreadyExistsException":
                    raise FaceProviderError(f"Failed to prepare collection: {e}") from e
            except BotoCoreError as e:
                raise FaceProviderError(f"Failed to prepare collection: {e}") from e
            self._collection_ready = True

    async def search_faces(
        self,
        image_bytes: bytes,
        gallery_id: str,
        threshold: float = 80.0,
    ) -> List[FaceMatch]:
        """Search the collection with a selfie.

        Raises:
            NoFaceDetectedError: If Rekognition finds no face in the selfie
            FaceProviderError: On any other Rekognition failure
        """
        try:
            async with self._get_client() as client:
                await self._ensure_collection(client)
                response = await client.search_faces_by_image(
                    CollectionId=self.collection_id,
                    Image={"Bytes": image_bytes},
                    MaxFaces=self.max_faces,
                    FaceMatchThreshold=threshold,
                )
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            if error_code == "InvalidParameterException":
                raise NoFaceDetectedError("No face detected in selfie") from e
            logger.error("Rekognition search failed", gallery_id=gallery_id, error=str(e))
            raise FaceProviderError(f"Rekognition search failed: {e}") from e
        except BotoCoreError as e:
            logger.error("Rekognition unreachable", gallery_id=gallery_id, error=str(e))
            raise FaceProviderError(f"Rekognition search failed: {e}") from e

        matches = []
        for face_match in response.get("FaceMatches", []):
            face = face_match.get("Face", {})
            photo_id = face.get("ExternalImageId")
            face_id = face.get("FaceId")
            if not photo_id or not face_id:
                continue
            matches.append(FaceMatch(
                photo_id=photo_id,
                similarity=float(face_match.get("Similarity", 0.0)),
                matched_face_id=face_id,
            ))

        logger.debug("Rekognition search returned", gallery_id=gallery_id, matches=len(matches))
        return sorted(matches, key=lambda m: m.similarity, reverse=True)

    async def index_faces(
        self,
        image_bytes: bytes,
        photo_id: str,
        gallery_id: str,
    ) -> List[IndexedFace]:
        """Index the faces of a gallery photo under its photo ID.

        Raises:
            FaceProviderError: If Rekognition rejects the request or cannot be reached
        """
        try:
            async with self._get_client() as client:
                await self._ensure_collection(client)
                response = await client.index_faces(
                    CollectionId=self.collection_id,
                    Image={"Bytes": image_bytes},
                    ExternalImageId=photo_id,
                    DetectionAttributes=["DEFAULT"],
                    MaxFaces=10,
                    QualityFilter="AUTO",
                )
        except (ClientError, BotoCoreError) as e:
            raise FaceProviderError(f"Rekognition indexing failed for photo {photo_id}: {e}") from e

        indexed = []
        for record in response.get("FaceRecords", []):
            face = record.get("Face", {})
            if not face.get("FaceId"):
                continue
            box = face.get("BoundingBox")
            indexed.append(IndexedFace(
                external_face_id=face["FaceId"],
                confidence=float(face.get("Confidence", 0.0)),
                bounding_box=BoundingBox(
                    left=box.get("Left", 0.0),
                    top=box.get("Top", 0.0),
                    width=box.get("Width", 0.0),
                    height=box.get("Height", 0.0),
                ) if box else None,
            ))

        logger.info("Indexed photo faces", photo_id=photo_id, gallery_id=gallery_id, faces=len(indexed))
        return indexed
