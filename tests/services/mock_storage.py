"""Mock storage client for testing storage operations."""

from __future__ import annotations

import hashlib
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, BinaryIO, Generator

from storage_cos.domain import ObjectRecord, StorageConfig, StoredObject
from storage_cos.infra.storage.client import StorageError

NOT_FOUND = "NoSuchKey: The specified key does not exist."


@dataclass
class MockStorageClient:
    """In-memory mock of StorageClient for testing."""

    config: StorageConfig | None = None
    read_size: int = 4
    objects: dict[str, bytes] = field(default_factory=dict)
    calls: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    buckets: set[str] | None = None

    def _record(self, name: str, **params: Any) -> None:
        self.calls.append((name, params))

    def head_bucket(self, *, bucket: str) -> None:
        self._record("head_bucket", bucket=bucket)
        if self.buckets is not None and bucket not in self.buckets:
            raise StorageError("Failed to access bucket: 404: Not Found")

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: BinaryIO,
        content_length: int,
    ) -> StoredObject:
        self._record(
            "put_object",
            bucket=bucket,
            object_key=object_key,
            content_length=content_length,
        )
        chunks = []
        while True:
            chunk = body.read(self.read_size)
            if not chunk:
                break
            chunks.append(chunk)
        data = b"".join(chunks)
        self.objects[object_key] = data
        return StoredObject(
            location=f"{bucket}.cos.mock/{object_key}",
            etag=f'"{hashlib.md5(data).hexdigest()}"',
        )

    def iter_object(
        self,
        *,
        bucket: str,
        object_key: str,
        chunk_size: int,
    ) -> Generator[bytes, None, None]:
        self._record("iter_object", bucket=bucket, object_key=object_key)
        if object_key not in self.objects:
            raise StorageError(f"Failed to download object: {NOT_FOUND}")
        data = self.objects[object_key]
        for offset in range(0, len(data), chunk_size):
            yield data[offset : offset + chunk_size]

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str,
        limit: int,
    ) -> list[ObjectRecord]:
        self._record("list_objects", bucket=bucket, prefix=prefix, limit=limit)
        stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
        return [
            ObjectRecord(
                key=key,
                size=len(data),
                last_modified=stamp,
                etag=f'"{hashlib.md5(data).hexdigest()}"',
            )
            for key, data in sorted(self.objects.items())
            if key.startswith(prefix)
        ][:limit]

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        self._record("delete_object", bucket=bucket, object_key=object_key)
        self.objects.pop(object_key, None)

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
    ) -> str:
        self._record("presign_download", bucket=bucket, object_key=object_key)
        return f"https://{bucket}.cos.mock/{object_key}?X-Amz-Expires={expires_in}"


@dataclass
class SlowStorageClient(MockStorageClient):
    """Reads one byte at a time with a delay, so transfers can be interrupted."""

    delay: float = 0.01
    read_size: int = 1
    started: threading.Event = field(default_factory=threading.Event)
    finished: threading.Event = field(default_factory=threading.Event)
    error: BaseException | None = None

    def put_object(self, **kwargs: Any) -> StoredObject:
        self.started.set()
        body = kwargs["body"]
        original_read = body.read

        def slow_read(size: int = -1) -> bytes:
            time.sleep(self.delay)
            return original_read(size)

        body.read = slow_read
        try:
            return super().put_object(**kwargs)
        except BaseException as exc:
            self.error = exc
            raise
        finally:
            self.finished.set()


@dataclass
class MockClientFactory:
    """Client factory that records every client it builds."""

    client: MockStorageClient = field(default_factory=MockStorageClient)
    built: list[StorageConfig] = field(default_factory=list)
    threads: list[int] = field(default_factory=list)

    def __call__(self, config: StorageConfig) -> MockStorageClient:
        self.built.append(config)
        self.threads.append(threading.get_ident())
        self.client.config = config
        return self.client

    @property
    def network_calls(self) -> list[tuple[str, dict[str, Any]]]:
        return self.client.calls
