"""Tests for selfie normalization."""
import io

import numpy as np
import pytest
from PIL import Image

from app.core.exceptions import InvalidImageError
from app.core.utils.image import bytes_to_numpy_array, normalize_selfie


def make_image(width: int, height: int, mode: str = "RGB", fmt: str = "PNG") -> bytes:
    output = io.BytesIO()
    Image.new(mode, (width, height), color=128 if mode == "L" else (200, 120, 40)).save(output, format=fmt)
    return output.getvalue()


def decode(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_large_selfie_is_shrunk_keeping_aspect_ratio():
    normalized = decode(normalize_selfie(make_image(3000, 1500), max_dimension=1000))
    assert normalized.format == "JPEG"
    assert normalized.size == (1000, 500)


def test_small_selfie_is_not_enlarged():
    assert decode(normalize_selfie(make_image(320, 240))).size == (320, 240)


def test_non_rgb_input_becomes_rgb_jpeg():
    normalized = decode(normalize_selfie(make_image(64, 64, mode="RGBA")))
    assert normalized.mode == "RGB"


def test_normalization_is_deterministic():
    image = make_image(1200, 900)
    assert normalize_selfie(image) == normalize_selfie(image)


def test_invalid_bytes_raise():
    with pytest.raises(InvalidImageError):
        normalize_selfie(b"not an image")


def test_bytes_to_numpy_array():
    array = bytes_to_numpy_array(make_image(40, 20))
    assert isinstance(array, np.ndarray)
    assert array.shape == (20, 40, 3)
    with pytest.raises(ValueError):
        bytes_to_numpy_array(b"")
    with pytest.raises(ValueError):
        bytes_to_numpy_array(b"garbage")
