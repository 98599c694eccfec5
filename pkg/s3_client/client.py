"""
S3 object storage client.

Supports AWS S3 and S3-compatible endpoints (MinIO, LocalStack) through
`endpoint_url`. boto3 is blocking, so the async methods run calls in a
worker thread.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

MIN_URL_EXPIRY_S = 60
MAX_URL_EXPIRY_S = 86400
DEFAULT_URL_EXPIRY_S = 3600


class StorageError(Exception):
    """Base exception for object storage operations."""
    pass


class StorageConfigurationError(StorageError):
    """Storage is not configured."""
    pass


class StorageUploadError(StorageError):
    pass


class StorageUrlError(StorageError):
    pass


@dataclass
class S3Config:
    bucket: Optional[str]
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    endpoint_url: Optional[str] = None


class S3Client:
    def __init__(self, config: S3Config, logger: logging.Logger):
        self.config = config
        self.logger = logger
        self._client = None

    @property
    def is_enabled(self) -> bool:
        return bool(self.config.bucket and self.config.access_key_id and self.config.secret_access_key)

    def _get_client(self):
        """Create the boto3 client on first use."""
        if self._client is not None:
            return self._client
        if not self.is_enabled:
            raise StorageConfigurationError("File storage not configured")

        client_kwargs: Dict[str, Any] = {
            "service_name": "s3",
            "region_name": self.config.region,
            "aws_access_key_id": self.config.access_key_id,
            "aws_secret_access_key": self.config.secret_access_key,
            "config": Config(signature_version="s3v4", retries={"max_attempts": 3, "mode": "adaptive"}),
        }
        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url
            self.logger.info(f"Using custom S3 endpoint: {self.config.endpoint_url}")

        self._client = boto3.client(**client_kwargs)
        self.logger.info(f"S3 client initialized for bucket: {self.config.bucket}")
        return self._client

    def _put_object(self, key: str, body: bytes, content_type: str) -> Dict[str, Any]:
        client = self._get_client()
        try:
            resp = client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                ServerSideEncryption="AES256",
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageUploadError(f"Failed to upload file: {e}") from e
        return {"key": key, "etag": (resp.get("ETag") or "").strip('"'), "size": len(body)}

    def _presigned_url(self, key: str, expires_in: int) -> str:
        client = self._get_client()
        try:
            return client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.config.bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            self.logger.error(f"Failed to generate download URL for {key}: {e}")
            raise StorageUrlError(f"Failed to generate download URL: {e}") from e

    async def upload(self, key: str, body: bytes, content_type: str) -> Dict[str, Any]:
        result = await asyncio.to_thread(self._put_object, key, body, content_type)
        self.logger.info(f"Uploaded {key} ({len(body)} bytes)")
        return result

    async def download_url(self, key: str, expires_in: int = DEFAULT_URL_EXPIRY_S) -> str:
        if not MIN_URL_EXPIRY_S <= expires_in <= MAX_URL_EXPIRY_S:
            raise ValueError(f"expires_in must be between {MIN_URL_EXPIRY_S} and {MAX_URL_EXPIRY_S} seconds")
        return await asyncio.to_thread(self._presigned_url, key, expires_in)
