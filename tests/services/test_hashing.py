"""Tests for the perceptual hasher."""
import io
import re

import imagehash
import numpy as np
import pytest
from PIL import Image

from app.services.hashing import HASH_HEX_LENGTH, PerceptualHasher
from tests.conftest import checkerboard, encode_image, horizontal_gradient, vertical_gradient


@pytest.fixture
def hasher():
    return PerceptualHasher()


def test_hash_is_sixteen_lowercase_hex_characters(hasher):
    value = hasher.hash(horizontal_gradient())
    assert len(value) == HASH_HEX_LENGTH
    assert re.fullmatch(r"[0-9a-f]{16}", value)


def test_hash_is_deterministic(hasher):
    image = checkerboard()
    assert hasher.hash(image) == hasher.hash(image)
    assert PerceptualHasher().hash(image) == hasher.hash(image)


def test_known_bit_layout(hasher):
    # first pixel is the most significant bit
    assert hasher.hash(horizontal_gradient()) == "0f0f0f0f0f0f0f0f"
    assert hasher.hash(vertical_gradient()) == "00000000ffffffff"
    assert hasher.hash(checkerboard()) == "55aa55aa55aa55aa"


def test_uniform_image_has_no_bits_set(hasher):
    # pixels equal to the mean are not brighter than it
    flat = encode_image(np.full((32, 32), 128, dtype=np.uint8))
    assert hasher.hash(flat) == "0000000000000000"


def test_self_distance_is_zero(hasher):
    value = hasher.hash(vertical_gradient())
    assert hasher.distance(value, value) == 0
    assert hasher.are_similar(value, value)


def test_distance_is_symmetric_and_bounded(hasher):
    assert hasher.distance("0000000000000000", "ffffffffffffffff") == 64
    assert hasher.distance("0f0f0f0f0f0f0f0f", "00000000ffffffff") == hasher.distance(
        "00000000ffffffff", "0f0f0f0f0f0f0f0f"
    )


def test_reencoded_image_stays_similar(hasher):
    high = hasher.hash(horizontal_gradient(fmt="JPEG", quality=95))
    low = hasher.hash(horizontal_gradient(fmt="JPEG", quality=60))
    assert hasher.distance(high, low) <= 5
    assert hasher.are_similar(high, low)


def test_resized_image_stays_similar(hasher):
    small = hasher.hash(checkerboard(size=64))
    large = hasher.hash(checkerboard(size=256))
    assert hasher.are_similar(small, large)


def test_different_images_are_not_similar(hasher):
    a = hasher.hash(horizontal_gradient())
    b = hasher.hash(vertical_gradient())
    assert hasher.distance(a, b) > 5
    assert not hasher.are_similar(a, b)


def test_threshold_override(hasher):
    assert hasher.are_similar("0000000000000000", "00000000000000ff", threshold=8)
    assert not hasher.are_similar("0000000000000000", "00000000000000ff")


def test_undecodable_bytes_fall_back_to_content_hash(hasher):
    garbage = b"definitely not an image"
    value = hasher.hash(garbage)
    assert value == PerceptualHasher.content_hash(garbage)
    assert len(value) == HASH_HEX_LENGTH
    assert hasher.hash(b"another blob") != value


def test_empty_bytes_fall_back_to_content_hash(hasher):
    assert hasher.hash(b"") == PerceptualHasher.content_hash(b"")


@pytest.mark.parametrize("image", [horizontal_gradient(), vertical_gradient(), checkerboard()])
def test_hash_matches_imagehash_average_hash(hasher, image):
    expected = imagehash.average_hash(Image.open(io.BytesIO(image)), hash_size=8)
    assert hasher.hash(image) == str(expected)


def test_distance_matches_imagehash_difference(hasher):
    a = hasher.hash(horizontal_gradient())
    b = hasher.hash(checkerboard())
    assert hasher.distance(a, b) == imagehash.hex_to_hash(a) - imagehash.hex_to_hash(b) == 32


def test_distance_rejects_malformed_fingerprints(hasher):
    with pytest.raises(ValueError):
        hasher.distance("abc", "0000000000000000")
