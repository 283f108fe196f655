"""Deterministic face recognition provider for local development and tests.

Indexed photos are remembered by their perceptual hash. A selfie matches an
indexed photo when the hashes are close; similarity falls linearly with the
Hamming distance (0 bits -> 100, 64 bits -> 0).
"""
import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

from app.core.logging import get_logger
from app.domain.interfaces.recognition import FaceRecognitionProvider
from app.domain.value_objects.recognition import BoundingBox, FaceMatch, IndexedFace
from app.services.hashing import HASH_BITS, PerceptualHasher

logger = get_logger(__name__)


@dataclass(frozen=True)
class _IndexedPhoto:
    photo_id: str
    face_id: str
    image_hash: str


class MockFaceRecognitionProvider(FaceRecognitionProvider):
    """Hash-similarity stand-in for a real face recognition provider."""

    def __init__(self, hasher: Optional[PerceptualHasher] = None) -> None:
        self._hasher = hasher or PerceptualHasher()
        self._index: Dict[str, List[_IndexedPhoto]] = {}
        self._lock = asyncio.Lock()

    @property
    def provider_name(self) -> str:
        return "mock"

    async def index_faces(self, image_bytes: bytes, photo_id: str, gallery_id: str) -> List[IndexedFace]:
        image_hash = await asyncio.to_thread(self._hasher.hash, image_bytes)
        face_id = f"mock-{photo_id[:8]}-{image_hash[:8]}"
        async with self._lock:
            entries = self._index.setdefault(gallery_id, [])
            entries[:] = [entry for entry in entries if entry.photo_id != photo_id]
            entries.append(_IndexedPhoto(photo_id=photo_id, face_id=face_id, image_hash=image_hash))

        logger.debug("Mock indexed photo", photo_id=photo_id, gallery_id=gallery_id)
        return [IndexedFace(
            external_face_id=face_id,
            confidence=99.0,
            bounding_box=BoundingBox(left=0.3, top=0.2, width=0.2, height=0.25),
        )]

    async def search_faces(self, image_bytes: bytes, gallery_id: str, threshold: float = 80.0) -> List[FaceMatch]:
        selfie_hash = await asyncio.to_thread(self._hasher.hash, image_bytes)

        matches = []
        for entry in self._index.get(gallery_id, []):
            distance = self._hasher.distance(selfie_hash, entry.image_hash)
            similarity = 100.0 * (1 - distance / HASH_BITS)
            if similarity >= threshold:
                matches.append(FaceMatch(
                    photo_id=entry.photo_id,
                    similarity=similarity,
                    matched_face_id=entry.face_id,
                ))
        return sorted(matches, key=lambda m: m.similarity, reverse=True)
