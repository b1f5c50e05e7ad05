"""S3-compatible object store client for packaged content archives."""

import asyncio
import logging
from functools import partial
from pathlib import Path
from typing import Any, Callable, Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings
from ..errors import StoreError

logger = logging.getLogger(__name__)

MAX_PRESIGN_EXPIRY = 7 * 24 * 3600


class S3Storage:
    """S3/MinIO/R2 client for content archives.

    All boto3 calls are blocking and run in the default executor so they do
    not stall the event loop.

    Attributes:
        bucket: Bucket holding the content archives
        endpoint_url: Store endpoint, also used to build public URLs
        is_dev: Log every store call when True
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: str,
        access_key: str,
        secret_key: str,
        region: str = "",
        is_dev: bool = False,
    ):
        """Initialize S3 client.

        Args:
            bucket: Bucket name
            endpoint_url: Store endpoint URL
            access_key: Access key id
            secret_key: Secret access key
            region: Region name (empty for the store default)
            is_dev: Enable verbose call logging

        Raises:
            ValueError: If either credential is empty
        """
        if not access_key or not secret_key:
            raise ValueError("S3_ACCESS_KEY and S3_SECRET_KEY must be set")

        self.bucket = bucket
        self.endpoint_url = endpoint_url.rstrip("/")
        self.is_dev = is_dev
        self.s3 = boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            region_name=region or None,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            config=Config(signature_version="s3v4"),
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3Storage":
        """Build a client from service settings."""
        return cls(
            bucket=settings.S3_BUCKET,
            endpoint_url=settings.S3_ENDPOINT,
            access_key=settings.S3_ACCESS_KEY,
            secret_key=settings.S3_SECRET_KEY,
            region=settings.S3_REGION,
            is_dev=settings.is_dev,
        )

    async def _call(self, operation: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking boto3 call in the executor, mapping failures to StoreError."""
        if self.is_dev:
            logger.debug(f"S3 {operation} args={args} kwargs={kwargs}")
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, partial(func, *args, **kwargs))
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "Unknown")
            logger.error(f"S3 {operation} failed ({code}): {e}")
            raise StoreError(f"{operation} failed: {code}") from e
        except BotoCoreError as e:
            logger.error(f"S3 {operation} failed: {e}")
            raise StoreError(f"{operation} failed: {e}") from e

    def public_url(self, key: str) -> str:
        """Return the direct URL of a publicly readable object."""
        return f"{self.endpoint_url}/{self.bucket}/{key}"

    async def list_buckets(self) -> list[str]:
        """List bucket names visible to the configured credentials.

        Returns:
            Bucket names
        """
        response = await self._call("list_buckets", self.s3.list_buckets)
        return [bucket["Name"] for bucket in response.get("Buckets", [])]

    async def list_objects(self, bucket: Optional[str] = None) -> list[str]:
        """List all object keys in a bucket.

        Args:
            bucket: Bucket to list (default: configured bucket)

        Returns:
            Object keys
        """
        bucket = bucket or self.bucket
        keys: list[str] = []
        token: Optional[str] = None

        while True:
            kwargs: dict[str, Any] = {"Bucket": bucket}
            if token:
                kwargs["ContinuationToken"] = token
            response = await self._call("list_objects", self.s3.list_objects_v2, **kwargs)
            keys.extend(obj["Key"] for obj in response.get("Contents", []))
            if not response.get("IsTruncated"):
                return keys
            token = response.get("NextContinuationToken")

    async def put_object(self, key: str, data: bytes, public: bool = True) -> str:
        """Upload bytes under a key.

        Args:
            key: Object key
            data: Object body
            public: Make the object publicly readable

        Returns:
            Public URL of the uploaded object
        """
        kwargs: dict[str, Any] = {"Bucket": self.bucket, "Key": key, "Body": data}
        if public:
            kwargs["ACL"] = "public-read"

        await self._call("put_object", self.s3.put_object, **kwargs)
        logger.info(f"Uploaded {key} to bucket {self.bucket} ({len(data)} bytes)")
        return self.public_url(key)

    async def upload_file(self, file_path: Path, key: str, public: bool = True) -> str:
        """Upload a local file.

        Args:
            file_path: File to upload
            key: Object key
            public: Make the object publicly readable

        Returns:
            Public URL of the uploaded object
        """
        loop = asyncio.get_event_loop()
        data = await loop.run_in_executor(None, Path(file_path).read_bytes)
        return await self.put_object(key, data, public=public)

    async def get_presigned_url(self, key: str, expiration: int = 3600) -> str:
        """Generate a time-limited GET URL for an object.

        Args:
            key: Object key
            expiration: URL lifetime in seconds

        Returns:
            Presigned URL

        Raises:
            ValueError: If expiration is outside 1..604800 seconds
        """
        if not 0 < expiration <= MAX_PRESIGN_EXPIRY:
            raise ValueError(f"Presigned URL expiry must be 1..{MAX_PRESIGN_EXPIRY} seconds, got {expiration}")

        return await self._call(
            "get_presigned_url",
            self.s3.generate_presigned_url,
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expiration,
        )

    async def delete_object(self, key: str) -> None:
        """Remove an object.

        Args:
            key: Object key
        """
        await self._call("delete_object", self.s3.delete_object, Bucket=self.bucket, Key=key)
        logger.info(f"Removed {key} from bucket {self.bucket}")
