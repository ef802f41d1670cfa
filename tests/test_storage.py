"""Tests for the S3 object store with a mocked boto3 client."""

import io
from typing import Iterator
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from src.config import StorageConfig
from src.config.settings import Settings
from src.core.exceptions import TransientError
from src.core.relay import UploadRelay
from src.services.protocol import ObjectStore
from src.services.storage import S3ObjectStore

ENDPOINT: str = "http://minio:9000"


def _client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def mock_client() -> MagicMock:
    client = MagicMock()
    client.meta.endpoint_url = ENDPOINT
    return client


@pytest.fixture
def s3_store(mock_client: MagicMock) -> Iterator[S3ObjectStore]:
    """S3ObjectStore whose boto3 client factory returns `mock_client`."""
    settings = Settings(AWS_S3_HOST="minio", AWS_S3_PORT=9000, AWS_S3_USE_SSL=False)
    with patch("src.services.storage.boto3.client", return_value=mock_client) as client_factory:
        store = S3ObjectStore(settings=settings, storage_config=StorageConfig())
        store.client_factory = client_factory  # type: ignore[attr-defined]
        yield store


class TestS3Client:
    """Client construction."""

    def test_implements_protocol(self, s3_store: S3ObjectStore) -> None:
        assert isinstance(s3_store, ObjectStore)

    def test_client_cached_per_region(self, s3_store: S3ObjectStore) -> None:
        first = s3_store.get_client("eu-west-1")
        again = s3_store.get_client("eu-west-1")
        s3_store.get_client("us-east-2")

        assert first is again
        assert s3_store.client_factory.call_count == 2  # type: ignore[attr-defined]
        kwargs = s3_store.client_factory.call_args_list[0].kwargs  # type: ignore[attr-defined]
        assert kwargs["region_name"] == "eu-west-1"
        assert kwargs["endpoint_url"] == ENDPOINT

    def test_default_region(self, s3_store: S3ObjectStore) -> None:
        s3_store.get_client()
        kwargs = s3_store.client_factory.call_args.kwargs  # type: ignore[attr-defined]
        assert kwargs["region_name"] == "us-east-1"

    def test_object_url(self, s3_store: S3ObjectStore) -> None:
        assert s3_store.get_object_url("dst", "out/a.txt") == f"{ENDPOINT}/dst/out/a.txt"


@pytest.mark.asyncio
class TestS3ObjectStore:
    """Reads, writes and bucket checks."""

    async def test_open_read_returns_body(self, s3_store: S3ObjectStore, mock_client: MagicMock) -> None:
        body = io.BytesIO(b"archive")
        mock_client.get_object.return_value = {"Body": body}

        result = await s3_store.aopen_read("src", "eu-west-1", "data/archive.tar.gz")

        assert result is body
        mock_client.get_object.assert_called_once_with(Bucket="src", Key="data/archive.tar.gz")

    async def test_open_read_missing_key(self, s3_store: S3ObjectStore, mock_client: MagicMock) -> None:
        mock_client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")

        with pytest.raises(TransientError, match="s3://src/missing.tar.gz"):
            await s3_store.aopen_read("src", "eu-west-1", "missing.tar.gz")

    async def test_open_read_connection_error(self, s3_store: S3ObjectStore, mock_client: MagicMock) -> None:
        mock_client.get_object.side_effect = EndpointConnectionError(endpoint_url=ENDPOINT)

        with pytest.raises(TransientError):
            await s3_store.aopen_read("src", "eu-west-1", "data/archive.tar.gz")

    async def test_put_object_streams_relay(self, s3_store: S3ObjectStore, mock_client: MagicMock) -> None:
        uploaded: list[bytes] = []

        def upload_fileobj(fileobj: UploadRelay, bucket: str, key: str, Config: object) -> None:
            while chunk := fileobj.read(3):
                uploaded.append(chunk)

        mock_client.upload_fileobj.side_effect = upload_fileobj
        mock_client.head_object.return_value = {"ETag": '"abc"', "ContentLength": 11}

        relay = UploadRelay(maxsize=4)
        for chunk in (b"hello ", b"world"):
            await relay.write(chunk)
        await relay.aclose()

        response = await s3_store.aput_object("dst", "eu-west-1", "out/a.txt", relay)

        assert b"".join(uploaded) == b"hello world"
        assert uploaded[0] == b"hel"
        assert response == {
            "Bucket": "dst",
            "Key": "out/a.txt",
            "Location": f"{ENDPOINT}/dst/out/a.txt",
            "ETag": '"abc"',
            "ContentLength": 11,
        }
        mock_client.head_object.assert_called_once_with(Bucket="dst", Key="out/a.txt")

    async def test_put_object_client_error(self, s3_store: S3ObjectStore, mock_client: MagicMock) -> None:
        mock_client.upload_fileobj.side_effect = _client_error("SlowDown", "PutObject")
        relay = UploadRelay()
        await relay.aclose()

        with pytest.raises(TransientError, match="s3://dst/out/a.txt"):
            await s3_store.aput_object("dst", "eu-west-1", "out/a.txt", relay)
        mock_client.head_object.assert_not_called()

    async def test_bucket_exists(self, s3_store: S3ObjectStore, mock_client: MagicMock) -> None:
        assert await s3_store.acheck_bucket_exists("dst", "eu-west-1") is True
        mock_client.head_bucket.assert_called_once_with(Bucket="dst")

    @pytest.mark.parametrize("code", ["404", "403", "500"])
    async def test_bucket_not_accessible(
        self, s3_store: S3ObjectStore, mock_client: MagicMock, code: str
    ) -> None:
        mock_client.head_bucket.side_effect = _client_error(code, "HeadBucket")

        assert await s3_store.acheck_bucket_exists("dst", "eu-west-1") is False
