"""S3/MinIO object store used to read archives and write their entries."""

import asyncio
from typing import IO, Any

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from src import create_logger
from src.config import StorageConfig, app_config, app_settings
from src.config.settings import Settings
from src.core.exceptions import TransientError
from src.core.relay import UploadRelay
from src.schemas.results import ProviderResponse

logger = create_logger("storage")


def _get_s3_stream(client: Any, bucket_name: str, key: str) -> Any:
    """Get a streaming body from S3.

    Parameters
    ----------
    client : Any
        Boto3 S3 client.
    bucket_name : str
        Name of the S3 bucket.
    key : str
        Object key in S3.

    Returns
    -------
    Any
        The streaming body object.

    Raises
    ------
    TransientError
        If the object cannot be opened.
    """
    try:
        response = client.get_object(Bucket=bucket_name, Key=key)
        return response["Body"]
    except ClientError as e:
        error_code = e.response.get("Error", {}).get("Code")
        if error_code == "NoSuchKey":
            logger.error(f"[x] Object not found in S3: bucket={bucket_name}, key={key}")
        else:
            logger.error(f"[x] S3 error retrieving object: bucket={bucket_name}, key={key}, error={e}")
        raise TransientError(f"Failed to open s3://{bucket_name}/{key}: {e}") from e
    except BotoCoreError as e:
        logger.error(f"[x] BotoCore error retrieving object: bucket={bucket_name}, key={key}, error={e}")
        raise TransientError(f"Failed to open s3://{bucket_name}/{key}: {e}") from e


def _upload_stream(
    client: Any, body: UploadRelay, bucket_name: str, key: str, transfer_config: TransferConfig
) -> dict[str, Any]:
    """Upload everything read from `body` and return the stored object's head."""
    try:
        client.upload_fileobj(body, bucket_name, key, Config=transfer_config)
        return client.head_object(Bucket=bucket_name, Key=key)

    except ClientError as e:
        logger.error(f"[x] Failed to upload s3://{bucket_name}/{key}: {e}")
        raise TransientError(f"Failed to upload s3://{bucket_name}/{key}: {e}") from e

    except BotoCoreError as e:
        logger.error(f"[x] BotoCore error uploading s3://{bucket_name}/{key}: {e}")
        raise TransientError(f"Failed to upload s3://{bucket_name}/{key}: {e}") from e


class S3ObjectStore:
    """
    Object store backed by AWS S3, MinIO or another S3-compatible service.

    One boto3 client is created per region on first use, so the source archive and
    the destination bucket may live in different regions.
    """

    def __init__(
        self,
        settings: Settings = app_settings,
        storage_config: StorageConfig = app_config.storage_config,
    ) -> None:
        self.settings = settings
        self.storage_config = storage_config
        self._clients: dict[str, Any] = {}
        self.transfer_config = TransferConfig(
            multipart_threshold=storage_config.multipart_threshold,
            multipart_chunksize=storage_config.multipart_chunksize,
            max_concurrency=storage_config.max_concurrency,
        )
        logger.info(
            f"[+] {self.__class__.__name__} initialized: endpoint={settings.aws_s3_endpoint_url}, "
            f"default_region={settings.AWS_DEFAULT_REGION}"
        )

    def get_client(self, region: str | None = None) -> Any:
        """Return the cached S3 client for `region`, creating it if needed."""
        region = region or self.settings.AWS_DEFAULT_REGION
        if region not in self._clients:
            try:
                self._clients[region] = boto3.client(
                    "s3",
                    aws_access_key_id=self.settings.AWS_ACCESS_KEY_ID.get_secret_value() or None,
                    aws_secret_access_key=self.settings.AWS_SECRET_ACCESS_KEY.get_secret_value() or None,
                    region_name=region,
                    config=Config(
                        retries={
                            "max_attempts": self.storage_config.max_attempts,
                            "mode": self.storage_config.retry_mode,
                        }
                    ),
                    # ---- Required for MinIO or other S3-compatible services ----
                    endpoint_url=self.settings.aws_s3_endpoint_url,
                )
            except Exception as e:
                logger.error(f"[x] Failed to create S3 client for region {region}: {e}")
                raise
        return self._clients[region]

    async def aopen_read(self, bucket: str, region: str, key: str) -> IO[bytes]:
        """Asynchronously open a streaming body over `key`."""
        client = self.get_client(region)
        return await asyncio.to_thread(_get_s3_stream, client, bucket, key)

    async def aput_object(self, bucket: str, region: str, key: str, body: UploadRelay) -> ProviderResponse:
        """Upload the relay's bytes as `key` and return a summary of the stored object.

        The relay is read from a worker thread; multipart upload kicks in above the
        configured threshold.
        """
        client = self.get_client(region)
        head = await asyncio.to_thread(_upload_stream, client, body, bucket, key, self.transfer_config)
        logger.info(f"[+] Uploaded {body.bytes_read:,} bytes to 's3://{bucket}/{key}'")
        return {
            "Bucket": bucket,
            "Key": key,
            "Location": self.get_object_url(bucket, key, region),
            "ETag": head.get("ETag"),
            "ContentLength": head.get("ContentLength"),
        }

    async def acheck_bucket_exists(self, bucket: str, region: str) -> bool:
        """Check if the bucket exists and is accessible."""
        client = self.get_client(region)
        try:
            await asyncio.to_thread(client.head_bucket, Bucket=bucket)
            logger.info(f"[+] Successfully verified bucket: {bucket}")
            return True

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code")
            if error_code == "404":
                logger.error(f"Bucket {bucket} does not exist.")
            elif error_code == "403":
                logger.error(f"Access denied to bucket {bucket}.")
            else:
                logger.error(f"S3 Error: {e}")
            return False

    def get_object_url(self, bucket: str, key: str, region: str | None = None) -> str:
        """Get the S3 object URL format."""
        client = self.get_client(region)
        return f"{client.meta.endpoint_url}/{bucket}/{key}"
