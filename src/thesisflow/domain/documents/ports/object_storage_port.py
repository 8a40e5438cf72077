"""Blob store seen from the thesis workflow.

The workflow never inspects stored bytes. It keeps only the key returned
by ``store_file`` and writes it to ``thesis.document_ref``; the key is
later handed back to get a download URL or to remove an orphaned upload.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO
from uuid import UUID


@dataclass(frozen=True)
class StoredFile:
    """What the store reports after accepting a document.

    ``storage_key`` is opaque to callers. The S3 adapter derives it from
    the thesis id and the content hash, so identical bytes uploaded twice
    for one thesis share a key.
    """
    storage_key: str
    sha256: str
    size_bytes: int
    mime_type: str


class ObjectStoragePort(ABC):
    """Operations the workflow needs from a document store.

    Implementations raise ``StorageError`` when the backend is unreachable
    or refuses a request, and ``FileNotFoundError`` for keys that do not
    resolve to an object.
    """

    @abstractmethod
    async def store_file(
        self,
        file: BinaryIO,
        thesis_id: UUID,
        filename: str,
        mime_type: str,
    ) -> StoredFile:
        """Persist ``file`` under the given thesis. Empty input raises ValueError."""

    @abstractmethod
    async def retrieve_file(self, storage_key: str) -> BinaryIO:
        ...

    @abstractmethod
    async def delete_file(self, storage_key: str) -> bool:
        """Remove the object; False when there was nothing to remove."""

    @abstractmethod
    async def file_exists(self, storage_key: str) -> bool:
        ...

    @abstractmethod
    async def generate_presigned_url(
        self,
        storage_key: str,
        expires_in_seconds: int = 3600,
    ) -> str:
        """Time-limited GET URL for the object behind ``storage_key``."""
