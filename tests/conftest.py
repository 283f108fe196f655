"""Shared fixtures for the guest selfie matching tests."""
import asyncio
import io
from typing import List, Optional, Sequence

import numpy as np
import pytest
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.exceptions import StorageError
from app.domain.entities.selfie import GUEST_SELFIE_ACCESS_MODE
from app.domain.interfaces.recognition import FaceRecognitionProvider
from app.domain.interfaces.storage import StorageCategory, UploadResult
from app.domain.value_objects.recognition import BoundingBox, FaceMatch, IndexedFace
from app.infrastructure.database.models import Base, Gallery, Photo
from app.services.mock import InMemoryStorageService

GALLERY_ID = "0b6f3c2e-5d1a-4c7e-9f10-2a3b4c5d6e70"
DISABLED_GALLERY_ID = "1c7a4d3f-6e2b-4d8f-8a21-3b4c5d6e7f81"
MOBILE_GALLERY_ID = "2d8b5e4a-7f3c-4e9a-9b32-4c5d6e7f8a92"
CLOSED_GALLERY_ID = "3e9c6f5b-8a4d-4fab-8c43-5d6e7f8a9ba3"

PHOTO_1 = "a1000000-0000-4000-8000-000000000001"
PHOTO_2 = "a2000000-0000-4000-8000-000000000002"
PHOTO_3 = "a3000000-0000-4000-8000-000000000003"
OTHER_GALLERY_PHOTO = "b1000000-0000-4000-8000-000000000001"

MOBILE = "9876543210"
SESSION_TOKEN = "5f0e6a9c-1b2d-4e3f-8a4b-5c6d7e8f9a0b"


def encode_image(pixels: np.ndarray, fmt: str = "PNG", **save_kwargs) -> bytes:
    output = io.BytesIO()
    Image.fromarray(pixels).save(output, format=fmt, **save_kwargs)
    return output.getvalue()


def horizontal_gradient(size: int = 64, fmt: str = "PNG", **save_kwargs) -> bytes:
    """Dark on the left, bright on the right."""
    row = np.linspace(0, 255, size).astype(np.uint8)
    return encode_image(np.tile(row, (size, 1)), fmt, **save_kwargs)


def vertical_gradient(size: int = 64, fmt: str = "PNG", **save_kwargs) -> bytes:
    """Dark at the top, bright at the bottom."""
    column = np.linspace(0, 255, size).astype(np.uint8).reshape(size, 1)
    return encode_image(np.tile(column, (1, size)), fmt, **save_kwargs)


def checkerboard(size: int = 64, fmt: str = "PNG", **save_kwargs) -> bytes:
    """Alternating black and white blocks, one per hash cell."""
    cell = size // 8
    grid = (np.indices((8, 8)).sum(axis=0) % 2).astype(np.uint8) * 255
    return encode_image(np.kron(grid, np.ones((cell, cell), dtype=np.uint8)), fmt, **save_kwargs)


class RecordingStorage(InMemoryStorageService):
    """In-memory storage that can be told to fail uploads or signing."""

    def __init__(self, fail_upload: bool = False, fail_signing: bool = False, upload_delay: float = 0.0) -> None:
        super().__init__()
        self.fail_upload = fail_upload
        self.fail_signing = fail_signing
        self.upload_delay = upload_delay
        self.upload_calls = 0

    async def upload(self, data: bytes, suggested_name: str, category: StorageCategory) -> UploadResult:
        self.upload_calls += 1
        if self.upload_delay:
            await asyncio.sleep(self.upload_delay)
        if self.fail_upload:
            raise StorageError("Bucket unavailable")
        return await super().upload(data, suggested_name, category)

    async def get_signed_url(self, key: str, expires_in: int = 3600) -> str:
        if self.fail_signing:
            raise StorageError("Signing unavailable")
        return await super().get_signed_url(key, expires_in)


class FakeFaceProvider(FaceRecognitionProvider):
    """Scriptable face provider counting its calls."""

    def __init__(
        self,
        matches: Optional[Sequence[FaceMatch]] = None,
        search_error: Optional[Exception] = None,
        search_delay: float = 0.0,
        index_errors: Optional[List[Exception]] = None,
        index_delay: float = 0.0,
    ) -> None:
        self.matches = list(matches or [])
        self.search_error = search_error
        self.search_delay = search_delay
        self.index_errors = list(index_errors or [])
        self.index_delay = index_delay
        self.search_calls = 0
        self.index_calls = 0
        self.indexed: List[tuple] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    async def search_faces(self, image_bytes: bytes, gallery_id: str, threshold: float = 80.0) -> List[FaceMatch]:
        self.search_calls += 1
        if self.search_delay:
            await asyncio.sleep(self.search_delay)
        if self.search_error is not None:
            raise self.search_error
        return list(self.matches)

    async def index_faces(self, image_bytes: bytes, photo_id: str, gallery_id: str) -> List[IndexedFace]:
        self.index_calls += 1
        if self.index_delay:
            await asyncio.sleep(self.index_delay)
        if self.index_errors:
            raise self.index_errors.pop(0)
        self.indexed.append((photo_id, gallery_id))
        return [IndexedFace(
            external_face_id=f"face-{photo_id}",
            confidence=99.5,
            bounding_box=BoundingBox(left=0.1, top=0.1, width=0.3, height=0.3),
        )]


@pytest.fixture
async def session_factory(tmp_path):
    """File-backed SQLite database seeded with test galleries."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'selfies.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        session.add_all([
            Gallery(
                id=GALLERY_ID,
                name="Wedding",
                selfie_matching_enabled=True,
                access_modes=[GUEST_SELFIE_ACCESS_MODE],
            ),
            Gallery(
                id=DISABLED_GALLERY_ID,
                name="Private",
                selfie_matching_enabled=False,
                access_modes=[GUEST_SELFIE_ACCESS_MODE],
            ),
            Gallery(
                id=MOBILE_GALLERY_ID,
                name="Conference",
                selfie_matching_enabled=True,
                access_modes=[GUEST_SELFIE_ACCESS_MODE],
                require_mobile_for_selfie=True,
            ),
            Gallery(
                id=CLOSED_GALLERY_ID,
                name="Invite only",
                selfie_matching_enabled=True,
                access_modes=["PASSWORD"],
            ),
        ])
        await session.flush()
        session.add_all([
            Photo(id=PHOTO_1, gallery_id=GALLERY_ID, filename="ceremony.jpg"),
            Photo(id=PHOTO_2, gallery_id=GALLERY_ID, filename="reception.jpg"),
            Photo(id=PHOTO_3, gallery_id=GALLERY_ID, filename="dance.jpg"),
            Photo(id=OTHER_GALLERY_PHOTO, gallery_id=MOBILE_GALLERY_ID, filename="keynote.jpg"),
        ])
        await session.commit()

    yield factory

    await engine.dispose()


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def face_provider() -> FakeFaceProvider:
    return FakeFaceProvider()


@pytest.fixture
def selfie_bytes() -> bytes:
    return horizontal_gradient()
