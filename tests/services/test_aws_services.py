"""Tests for the Rekognition and S3 adapters against a fake aioboto3 session."""
from contextlib import asynccontextmanager

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError, NoCredentialsError

from app.core.exceptions import FaceProviderError, NoFaceDetectedError, StorageError
from app.services.aws.rekognition import RekognitionFaceProvider
from app.services.aws.s3 import S3StorageService
from app.services.face_indexing import FaceIndexingService
from app.services.galleries import DatabaseGalleryDirectory
from tests.conftest import GALLERY_ID, PHOTO_1, PHOTO_2


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeRekognitionClient:
    def __init__(self, search_response=None, search_error=None, collection_exists=True, index_error=None, create_error=None):
        self.search_response = search_response or {"FaceMatches": []}
        self.search_error = search_error
        self.collection_exists = collection_exists
        self.index_error = index_error
        self.create_error = create_error
        self.calls = []

    async def create_collection(self, **kwargs):
        self.calls.append(("create_collection", kwargs))
        if self.create_error is not None:
            raise self.create_error
        if self.collection_exists:
            raise client_error("ResourceAlreadyExistsException", "CreateCollection")
        return {"StatusCode": 200}

    async def search_faces_by_image(self, **kwargs):
        self.calls.append(("search_faces_by_image", kwargs))
        if self.search_error is not None:
            raise self.search_error
        return self.search_response

    async def index_faces(self, **kwargs):
        self.calls.append(("index_faces", kwargs))
        if self.index_error is not None:
            raise self.index_error
        return {"FaceRecords": [{
            "Face": {
                "FaceId": "face-1",
                "Confidence": 99.1,
                "BoundingBox": {"Left": 0.1, "Top": 0.2, "Width": 0.3, "Height": 0.4},
            }
        }]}


class FakeS3Client:
    def __init__(self, fail=False):
        self.fail = fail
        self.objects = {}

    async def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail:
            raise client_error("AccessDenied", "PutObject")
        self.objects[Key] = Body

    async def generate_presigned_url(self, operation, Params, ExpiresIn):
        if self.fail:
            raise client_error("AccessDenied", "GetObject")
        return f"https://{Params['Bucket']}.example/{Params['Key']}?expires={ExpiresIn}"


class FakeSession:
    def __init__(self, client):
        self._client = client
        self.client_args = []

    @asynccontextmanager
    async def client(self, service_name, **kwargs):
        self.client_args.append((service_name, kwargs))
        yield self._client


async def test_search_maps_matches():
    client = FakeRekognitionClient(search_response={"FaceMatches": [
        {"Similarity": 88.5, "Face": {"FaceId": "f-1", "ExternalImageId": PHOTO_1}},
        {"Similarity": 99.0, "Face": {"FaceId": "f-2", "ExternalImageId": PHOTO_2}},
        {"Similarity": 95.0, "Face": {"FaceId": "f-3"}},
    ]})
    provider = RekognitionFaceProvider("faces", session=FakeSession(client), max_faces=50)

    matches = await provider.search_faces(b"selfie", GALLERY_ID, threshold=85.0)

    assert [(m.photo_id, m.matched_face_id) for m in matches] == [(PHOTO_2, "f-2"), (PHOTO_1, "f-1")]
    search_call = dict(client.calls)["search_faces_by_image"]
    assert search_call["FaceMatchThreshold"] == 85.0
    assert search_call["MaxFaces"] == 50


async def test_collection_is_prepared_once():
    client = FakeRekognitionClient()
    provider = RekognitionFaceProvider("faces", session=FakeSession(client))

    await provider.search_faces(b"selfie", GALLERY_ID)
    await provider.search_faces(b"selfie", GALLERY_ID)

    assert [name for name, _ in client.calls].count("create_collection") == 1


async def test_invalid_parameter_means_no_face():
    client = FakeRekognitionClient(search_error=client_error("InvalidParameterException", "SearchFacesByImage"))
    provider = RekognitionFaceProvider("faces", session=FakeSession(client))

    with pytest.raises(NoFaceDetectedError):
        await provider.search_faces(b"selfie", GALLERY_ID)


async def test_other_client_errors_are_provider_errors():
    client = FakeRekognitionClient(search_error=client_error("ThrottlingException", "SearchFacesByImage"))
    provider = RekognitionFaceProvider("faces", session=FakeSession(client))

    with pytest.raises(FaceProviderError):
        await provider.search_faces(b"selfie", GALLERY_ID)


async def test_index_uses_photo_id_as_external_id():
    client = FakeRekognitionClient(collection_exists=False)
    session = FakeSession(client)
    provider = RekognitionFaceProvider(
        "faces",
        region_name="ap-south-1",
        access_key_id="key",
        secret_access_key="secret",
        session=session,
    )

    faces = await provider.index_faces(b"photo", PHOTO_1, GALLERY_ID)

    assert faces[0].external_face_id == "face-1"
    assert faces[0].bounding_box.width == pytest.approx(0.3)
    assert dict(client.calls)["index_faces"]["ExternalImageId"] == PHOTO_1
    assert session.client_args[0] == (
        "rekognition",
        {"region_name": "ap-south-1", "aws_access_key_id": "key", "aws_secret_access_key": "secret"},
    )


async def test_s3_upload_and_sign():
    client = FakeS3Client()
    storage = S3StorageService("selfie-bucket", region_name="ap-south-1", session=FakeSession(client))

    upload = await storage.upload(b"jpeg", "selfie-1.JPG", "selfies")
    url = await storage.get_signed_url(upload.key, expires_in=600)

    assert upload.key.startswith("selfies/")
    assert upload.key.endswith(".jpg")
    assert client.objects[upload.key] == b"jpeg"
    assert url.endswith("?expires=600")


async def test_s3_errors_become_storage_errors():
    storage = S3StorageService("selfie-bucket", session=FakeSession(FakeS3Client(fail=True)))

    with pytest.raises(StorageError):
        await storage.upload(b"jpeg", "selfie.jpg", "selfies")
    with pytest.raises(StorageError):
        await storage.get_signed_url("selfies/missing.jpg")


async def test_connection_errors_are_provider_errors():
    client = FakeRekognitionClient(search_error=EndpointConnectionError(endpoint_url="https://rekognition.test"))
    provider = RekognitionFaceProvider("faces", session=FakeSession(client))

    with pytest.raises(FaceProviderError):
        await provider.search_faces(b"selfie", GALLERY_ID)


async def test_collection_setup_errors_are_provider_errors():
    client = FakeRekognitionClient(create_error=NoCredentialsError())
    provider = RekognitionFaceProvider("faces", session=FakeSession(client))

    with pytest.raises(FaceProviderError):
        await provider.index_faces(b"photo", PHOTO_1, GALLERY_ID)


async def test_unreachable_rekognition_is_retried_by_indexing(session_factory):
    client = FakeRekognitionClient(index_error=EndpointConnectionError(endpoint_url="https://rekognition.test"))
    provider = RekognitionFaceProvider("faces", session=FakeSession(client))
    indexing = FaceIndexingService(
        provider,
        DatabaseGalleryDirectory(session_factory),
        max_retries=3,
        retry_base_delay=0.0,
    )

    result = await (await indexing.schedule(PHOTO_1, GALLERY_ID, b"photo"))

    assert result is None
    assert [name for name, _ in client.calls].count("index_faces") == 4
