"""Tests for the selfie match result cache."""
import pytest

from app.services.selfie_cache import SelfieCacheService
from tests.conftest import GALLERY_ID, MOBILE, MOBILE_GALLERY_ID, PHOTO_1, PHOTO_2, SESSION_TOKEN


@pytest.fixture
def cache(session_factory):
    return SelfieCacheService(session_factory)


async def test_store_and_lookup_by_each_key(cache):
    stored = await cache.store(
        gallery_id=GALLERY_ID,
        image_hash="0f0f0f0f0f0f0f0f",
        face_id="face-1",
        matched_photo_ids=[PHOTO_2, PHOTO_1],
        mobile_number=MOBILE,
        session_token=SESSION_TOKEN,
        selfie_key="selfies/abc.jpg",
    )

    by_mobile = await cache.lookup_by_mobile(GALLERY_ID, MOBILE)
    by_session = await cache.lookup_by_session_token(GALLERY_ID, SESSION_TOKEN)
    by_hash = await cache.lookup_by_hash(GALLERY_ID, "0f0f0f0f0f0f0f0f")

    assert by_mobile.id == by_session.id == by_hash.id == stored.id
    assert by_mobile.matched_photo_ids == [PHOTO_2, PHOTO_1]
    assert by_mobile.selfie_s3_key == "selfies/abc.jpg"


async def test_lookups_are_scoped_to_the_gallery(cache):
    await cache.store(GALLERY_ID, "0f0f0f0f0f0f0f0f", "face-1", [PHOTO_1], mobile_number=MOBILE)

    assert await cache.lookup_by_mobile(MOBILE_GALLERY_ID, MOBILE) is None
    assert await cache.lookup_by_hash(MOBILE_GALLERY_ID, "0f0f0f0f0f0f0f0f") is None


async def test_missing_records_return_none(cache):
    assert await cache.lookup_by_mobile(GALLERY_ID, MOBILE) is None
    assert await cache.lookup_by_session_token(GALLERY_ID, SESSION_TOKEN) is None
    assert await cache.lookup_by_hash(GALLERY_ID, "ffffffffffffffff") is None


async def test_store_is_append_only_and_latest_wins(cache):
    first = await cache.store(GALLERY_ID, "00000000ffffffff", "face-1", [PHOTO_1])
    second = await cache.store(GALLERY_ID, "00000000ffffffff", "face-2", [PHOTO_2])

    assert first.id != second.id
    assert (await cache.lookup_by_hash(GALLERY_ID, "00000000ffffffff")).id == second.id

    await cache.touch(first.id)
    assert (await cache.lookup_by_hash(GALLERY_ID, "00000000ffffffff")).id == first.id


async def test_touch_updates_last_used_at(cache):
    stored = await cache.store(GALLERY_ID, "55aa55aa55aa55aa", "face-1", [])
    await cache.touch(stored.id)
    touched = await cache.lookup_by_hash(GALLERY_ID, "55aa55aa55aa55aa")
    # SQLite returns naive timestamps
    assert touched.last_used_at.replace(tzinfo=None) >= stored.last_used_at.replace(tzinfo=None)


async def test_touch_of_missing_record_is_harmless(cache):
    await cache.touch("00000000-0000-4000-8000-000000000000")


async def test_invalidate_mobile_only_removes_that_guest(cache):
    await cache.store(GALLERY_ID, "0f0f0f0f0f0f0f0f", "face-1", [PHOTO_1], mobile_number=MOBILE)
    await cache.store(GALLERY_ID, "0f0f0f0f0f0f0f0f", "face-1", [PHOTO_1], mobile_number=MOBILE)
    await cache.store(GALLERY_ID, "00000000ffffffff", "face-2", [PHOTO_2], mobile_number="9123456789")
    await cache.store(MOBILE_GALLERY_ID, "0f0f0f0f0f0f0f0f", "face-3", [], mobile_number=MOBILE)

    assert await cache.invalidate_mobile(GALLERY_ID, MOBILE) == 2

    assert await cache.lookup_by_mobile(GALLERY_ID, MOBILE) is None
    assert await cache.lookup_by_mobile(GALLERY_ID, "9123456789") is not None
    assert await cache.lookup_by_mobile(MOBILE_GALLERY_ID, MOBILE) is not None

