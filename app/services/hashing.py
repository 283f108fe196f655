"""Perceptual hashing of selfie images.

Average hash (aHash) via imagehash:
    1. Decode as grayscale and shrink to an 8x8 grid (aspect ratio ignored)
    2. Bit i is 1 when pixel i is strictly brighter than the grid mean
    3. The 64 bits are rendered as 16 zero-padded hex characters, first pixel first

This only catches near duplicates (the same selfie re-uploaded or
re-compressed). Images that cannot be decoded fall back to a truncated MD5
of the raw bytes, which only matches byte-identical uploads.
"""
import hashlib
from typing import Optional

import cv2
import imagehash
from PIL import Image

from app.core.logging import get_logger
from app.core.utils.image import bytes_to_numpy_array

logger = get_logger(__name__)

HASH_SIZE = 8
HASH_BITS = HASH_SIZE * HASH_SIZE
HASH_HEX_LENGTH = HASH_BITS // 4
DEFAULT_SIMILARITY_THRESHOLD = 5


class PerceptualHasher:
    """Computes and compares 64-bit average hashes."""

    def __init__(self, similarity_threshold: int = DEFAULT_SIMILARITY_THRESHOLD) -> None:
        """Initialize the hasher.

        Args:
            similarity_threshold: Default maximum Hamming distance for are_similar
        """
        self.similarity_threshold = similarity_threshold

    def hash(self, image_bytes: bytes) -> str:
        """Compute the average hash of an image.

        Args:
            image_bytes: Encoded image data

        Returns:
            str: 16 lowercase hex characters
        """
        try:
            gray = bytes_to_numpy_array(image_bytes, cv2.IMREAD_GRAYSCALE)
        except ValueError as e:
            logger.warning("Falling back to content hash", error=str(e), size=len(image_bytes))
            return self.content_hash(image_bytes)

        return str(imagehash.average_hash(Image.fromarray(gray), hash_size=HASH_SIZE))

    @staticmethod
    def content_hash(data: bytes) -> str:
        """Deterministic fallback fingerprint of the raw bytes."""
        return hashlib.md5(data).hexdigest()[:HASH_HEX_LENGTH]

    @staticmethod
    def distance(hash_a: str, hash_b: str) -> int:
        """Hamming distance between two hex fingerprints (0-64).

        Raises:
            ValueError: If either value is not a 16 character hex fingerprint
        """
        if len(hash_a) != HASH_HEX_LENGTH or len(hash_b) != HASH_HEX_LENGTH:
            raise ValueError("Fingerprints must be 16 hex characters")
        return int(imagehash.hex_to_hash(hash_a) - imagehash.hex_to_hash(hash_b))

    def are_similar(self, hash_a: str, hash_b: str, threshold: Optional[int] = None) -> bool:
        """Whether two fingerprints are within the Hamming distance threshold."""
        if threshold is None:
            threshold = self.similarity_threshold
        return self.distance(hash_a, hash_b) <= threshold
