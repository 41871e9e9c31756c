"""S3-compatible blob store (AWS S3, MinIO, LocalStack).

boto3 is synchronous, so every call runs in a worker thread.
"""

import asyncio
import hashlib
import logging
from pathlib import PurePath
from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

from app.domain.repositories import IStorageService

logger = logging.getLogger(__name__)


class S3StorageService(IStorageService):
    """Material blobs as objects keyed ``<hash[:2]>/<sha256>_<name>``.

    The bucket is created on construction when missing.  Pass *endpoint_url*
    to target MinIO or LocalStack; leaving the credentials unset falls back to
    the default boto3 credential chain.
    """

    def __init__(
        self,
        bucket_name: str = "studyshare-materials",
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
    ):
        self.bucket_name = bucket_name
        kwargs: dict[str, Any] = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        if aws_access_key_id and aws_secret_access_key:
            kwargs["aws_access_key_id"] = aws_access_key_id
            kwargs["aws_secret_access_key"] = aws_secret_access_key
        self._client = boto3.client("s3", **kwargs)
        logger.info("S3 client initialised (endpoint=%s, bucket=%s)", endpoint_url or "AWS", bucket_name)
        self._ensure_bucket()

    def _ensure_bucket(self) -> None:
        try:
            self._client.head_bucket(Bucket=self.bucket_name)
        except ClientError:
            try:
                self._client.create_bucket(Bucket=self.bucket_name)
                logger.info("Created bucket '%s'", self.bucket_name)
            except ClientError as exc:
                logger.warning("Could not create bucket '%s': %s", self.bucket_name, exc)

    async def save_file(self, file_content: bytes, filename: str) -> str:
        content_hash = hashlib.sha256(file_content).hexdigest()
        key = f"{content_hash[:2]}/{content_hash}_{PurePath(filename).name}"
        await asyncio.to_thread(
            self._client.put_object, Bucket=self.bucket_name, Key=key, Body=file_content
        )
        logger.info("S3: uploaded %s (%d bytes)", key, len(file_content))
        return key

    async def get_file(self, file_path: str) -> bytes:
        try:
            response = await asyncio.to_thread(
                self._client.get_object, Bucket=self.bucket_name, Key=file_path
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise FileNotFoundError(file_path) from exc
            raise
        body: bytes = await asyncio.to_thread(response["Body"].read)
        logger.debug("S3: retrieved %s (%d bytes)", file_path, len(body))
        return body

    async def delete_file(self, file_path: str) -> bool:
        await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket_name, Key=file_path)
        logger.info("S3: deleted %s", file_path)
        return True
