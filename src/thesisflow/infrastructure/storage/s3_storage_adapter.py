"""boto3 implementation of ObjectStoragePort.

Works against AWS S3 and MinIO alike. A thesis document lives at
``theses/{thesis_id}/{sha256}{ext}``, so re-uploading identical bytes for
the same thesis resolves to the object that is already there.
"""

import hashlib
import logging
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Optional, Tuple
from uuid import UUID

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ...domain.documents.ports.object_storage_port import (
    ObjectStoragePort,
    StoredFile,
)
from ...domain.thesis.errors import StorageError
from .storage_config import StorageConfig

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 64 * 1024
MISSING_OBJECT_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _error_code(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "Unknown")
    return type(error).__name__


def _storage_error(operation: str, storage_key: str, error: Exception) -> StorageError:
    code = _error_code(error)
    logger.error(
        "Object storage %s failed",
        operation,
        extra={"storage_key": storage_key, "error_code": code},
    )
    return StorageError(f"Failed to {operation} file: {code}")


def _drain(file: BinaryIO) -> Tuple[bytes, str]:
    """Read the stream to the end, hashing as we go."""
    digest = hashlib.sha256()
    buffer = BytesIO()
    for chunk in iter(lambda: file.read(READ_CHUNK_BYTES), b""):
        digest.update(chunk)
        buffer.write(chunk)
    return buffer.getvalue(), digest.hexdigest()


class S3StorageAdapter(ObjectStoragePort):
    """Thesis document store backed by an S3 bucket.

    Example:
        storage = S3StorageAdapter.from_config(load_storage_config())
        stored = await storage.store_file(upload.file, thesis.id, "thesis.pdf", "application/pdf")
    """

    def __init__(
        self,
        endpoint_url: Optional[str],
        access_key: str,
        secret_key: str,
        bucket_name: str,
        region: str = "us-east-1",
    ):
        try:
            self.s3_client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
            )
        except BotoCoreError as e:
            raise StorageError(f"Failed to initialize S3 client: {e}") from e

        self.bucket_name = bucket_name
        self.region = region
        logger.info(
            "Object storage ready",
            extra={"bucket": bucket_name, "endpoint": endpoint_url or "aws", "region": region},
        )

    @classmethod
    def from_config(cls, config: StorageConfig) -> "S3StorageAdapter":
        return cls(
            endpoint_url=config.endpoint_url,
            access_key=config.access_key,
            secret_key=config.secret_key,
            bucket_name=config.bucket_name,
            region=config.region,
        )

    @staticmethod
    def generate_storage_key(thesis_id: UUID, sha256: str, filename: str) -> str:
        """Key for a thesis document; the extension is taken from filename, lowercased.

        >>> S3StorageAdapter.generate_storage_key(
        ...     UUID('a1b2c3d4-e5f6-7890-abcd-ef1234567890'), 'abc123', 'final.PDF')
        'theses/a1b2c3d4-e5f6-7890-abcd-ef1234567890/abc123.pdf'
        """
        return f"theses/{thesis_id}/{sha256}{Path(filename).suffix.lower()}"

    async def store_file(
        self,
        file: BinaryIO,
        thesis_id: UUID,
        filename: str,
        mime_type: str,
    ) -> StoredFile:
        content, sha256 = _drain(file)
        if not content:
            raise ValueError("Cannot store empty file")

        storage_key = self.generate_storage_key(thesis_id, sha256, filename)
        stored = StoredFile(
            storage_key=storage_key,
            sha256=sha256,
            size_bytes=len(content),
            mime_type=mime_type,
        )

        if await self.file_exists(storage_key):
            logger.info("Document already stored", extra={"storage_key": storage_key})
            return stored

        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=storage_key,
                Body=content,
                ContentType=mime_type,
                Metadata={
                    "sha256": sha256,
                    "original_filename": filename,
                    "thesis_id": str(thesis_id),
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise _storage_error("upload", storage_key, e) from e

        logger.info(
            "Document stored",
            extra={"storage_key": storage_key, "size_bytes": stored.size_bytes},
        )
        return stored

    async def retrieve_file(self, storage_key: str) -> BinaryIO:
        """Streaming body of the object; the caller closes it."""
        try:
            response = self.s3_client.get_object(Bucket=self.bucket_name, Key=storage_key)
        except ClientError as e:
            if _error_code(e) in MISSING_OBJECT_CODES:
                raise FileNotFoundError(f"File not found: {storage_key}") from e
            raise _storage_error("retrieve", storage_key, e) from e
        except BotoCoreError as e:
            raise _storage_error("retrieve", storage_key, e) from e
        return response["Body"]

    async def delete_file(self, storage_key: str) -> bool:
        # S3 deletes are idempotent, so ask first to report whether anything was removed
        if not await self.file_exists(storage_key):
            return False
        try:
            self.s3_client.delete_object(Bucket=self.bucket_name, Key=storage_key)
        except (ClientError, BotoCoreError) as e:
            raise _storage_error("delete", storage_key, e) from e
        logger.info("Document deleted", extra={"storage_key": storage_key})
        return True

    async def file_exists(self, storage_key: str) -> bool:
        try:
            self.s3_client.head_object(Bucket=self.bucket_name, Key=storage_key)
        except ClientError as e:
            if _error_code(e) in MISSING_OBJECT_CODES:
                return False
            raise _storage_error("check", storage_key, e) from e
        except BotoCoreError as e:
            raise _storage_error("check", storage_key, e) from e
        return True

    async def generate_presigned_url(
        self,
        storage_key: str,
        expires_in_seconds: int = 3600,
    ) -> str:
        if not await self.file_exists(storage_key):
            raise FileNotFoundError(f"File not found: {storage_key}")
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket_name, "Key": storage_key},
                ExpiresIn=expires_in_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise _storage_error("sign", storage_key, e) from e
