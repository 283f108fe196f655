"""
Image processing utility functions.
"""
import io

import cv2
import numpy as np
from PIL import Image, ImageOps

from app.core.exceptions import InvalidImageError


def bytes_to_numpy_array(image_bytes: bytes, flags: int = cv2.IMREAD_COLOR) -> np.ndarray:
    """Convert image bytes to a numpy array.

    Args:
        image_bytes: Raw image bytes
        flags: OpenCV imread flags (default: COLOR)

    Returns:
        numpy.ndarray: Image as a numpy array

    Raises:
        ValueError: If the image cannot be decoded
    """
    np_array = np.frombuffer(image_bytes, np.uint8)
    if np_array.size == 0:
        raise ValueError("Empty image buffer")

    try:
        img = cv2.imdecode(np_array, flags)
    except cv2.error as e:
        raise ValueError(f"Failed to decode image bytes: {e}") from e

    if img is None:
        raise ValueError("Failed to decode image bytes")

    return img


def normalize_selfie(image_bytes: bytes, max_dimension: int = 1000, quality: int = 80) -> bytes:
    """Fit a selfie inside a bounded box and re-encode it as JPEG.

    The image is rotated according to its EXIF orientation, converted to RGB
    and shrunk (never enlarged) so neither side exceeds ``max_dimension``.

    Args:
        image_bytes: Uploaded image bytes
        max_dimension: Largest allowed width or height in pixels
        quality: JPEG quality (1-95)

    Returns:
        bytes: JPEG encoded image

    Raises:
        InvalidImageError: If the upload is not a decodable image
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image = ImageOps.exif_transpose(image)
            image = image.convert("RGB")
            image.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            output = io.BytesIO()
            image.save(output, format="JPEG", quality=quality, optimize=True)
            return output.getvalue()
    except (Image.UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise InvalidImageError(f"Invalid image format: {e}") from e
