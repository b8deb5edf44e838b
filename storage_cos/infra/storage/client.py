"""Storage client protocol and data types.

This module defines the bucket scoped primitives the application needs from
an object storage service: existence check, streamed put and get, listing,
delete and presigned download URLs.
"""

from __future__ import annotations

from typing import BinaryIO, Generator, Protocol

from storage_cos.domain import ObjectRecord, StoredObject


class StorageError(RuntimeError):
    """Raised when object storage operations fail."""


class StorageClient(Protocol):
    """Protocol defining the interface for object storage backends.

    Implementations are synchronous and may block; callers run them in a
    worker thread.
    """

    def head_bucket(self, *, bucket: str) -> None:
        """Check that the bucket exists and the credentials may access it.

        Raises:
            StorageError: If the bucket is missing or access is denied.
        """
        ...

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: BinaryIO,
        content_length: int,
    ) -> StoredObject:
        """Upload ``body`` as a single object, reading it incrementally.

        Args:
            bucket: Target bucket name.
            object_key: Object key (path) in the bucket.
            body: Readable binary stream positioned at the start.
            content_length: Exact number of bytes ``body`` will yield.

        Returns:
            StoredObject with the object location and ETag.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def iter_object(
        self,
        *,
        bucket: str,
        object_key: str,
        chunk_size: int,
    ) -> Generator[bytes, None, None]:
        """Stream an object's content in chunks.

        The returned generator must release the underlying connection when it
        is exhausted or closed.

        Raises:
            StorageError: If the object doesn't exist or the read fails.
        """
        ...

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str,
        limit: int,
    ) -> list[ObjectRecord]:
        """List up to ``limit`` objects whose key starts with ``prefix``.

        Entries are returned in the order the service reports them.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage.

        Raises:
            StorageError: If the operation fails.
        """
        ...

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
    ) -> str:
        """Generate a presigned GET URL locally, without a network call.

        Raises:
            StorageError: If URL generation fails.
        """
        ...
