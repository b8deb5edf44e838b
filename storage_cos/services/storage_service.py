"""Storage operation layer.

Turns high level intents (upload this file under that key, give me a URL for
N seconds, ...) into calls on a :class:`StorageClient` and normalizes every
outcome into a :class:`Result`. Blocking client calls run in worker threads so
overlapping operations on one event loop do not stall each other.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import tempfile
import threading
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import BinaryIO

from storage_cos.common.config import Settings, get_settings
from storage_cos.common.result import Result
from storage_cos.domain import ObjectRecord, StorageConfig, StoredObject, UploadProgress
from storage_cos.infra.config_store import ConfigStore
from storage_cos.infra.storage import (
    ClientFactory,
    ConnectionCache,
    S3StorageClient,
    StorageClient,
)
from storage_cos.services.base import (
    ConfigurationError,
    LocalResourceError,
    TransferCancelled,
    failure_from,
    record_success,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[UploadProgress], None]


def _new_file_mode() -> int:
    # umask can only be read by setting it; done once at import
    umask = os.umask(0o022)
    os.umask(umask)
    return 0o666 & ~umask


NEW_FILE_MODE = _new_file_mode()


class ProgressTracker:
    """Converts stream positions into non-decreasing progress records.

    Percentages are truncated to two decimals, so 100 is only reported once
    every byte has been consumed. Positions may move backwards when the
    transport rewinds the body; such updates are ignored.
    """

    def __init__(self, total: int, emit: ProgressCallback | None = None):
        self.total = max(int(total), 0)
        self._emit = emit
        self._loaded = 0
        self._last: UploadProgress | None = None
        self._closed = False

    def _percent(self, loaded: int) -> float:
        if self.total == 0:
            return 100.0
        return (loaded * 10000 // self.total) / 100

    def update(self, position: int) -> None:
        if self._closed:
            return
        loaded = min(max(int(position), self._loaded), self.total)
        progress = UploadProgress(
            percent=self._percent(loaded), loaded=loaded, total=self.total
        )
        self._loaded = loaded
        if self._last is not None and progress.percent == self._last.percent:
            return
        self._publish(progress)

    def complete(self) -> None:
        """Report 100% unless that was the last record already sent."""
        if self._closed:
            return
        if self._last is None or self._last.percent < 100:
            self._loaded = self.total
            self._publish(UploadProgress(percent=100.0, loaded=self.total, total=self.total))
        self._closed = True

    def close(self) -> None:
        self._closed = True

    def _publish(self, progress: UploadProgress) -> None:
        self._last = progress
        if self._emit is not None:
            self._emit(progress)


class _ProgressReader:
    """File wrapper reporting its read position and honoring cancellation."""

    def __init__(
        self, fh: BinaryIO, tracker: ProgressTracker, cancelled: threading.Event
    ):
        self._fh = fh
        self._tracker = tracker
        self._cancelled = cancelled

    def read(self, size: int = -1) -> bytes:
        if self._cancelled.is_set():
            raise TransferCancelled("Upload cancelled")
        data = self._fh.read(size)
        self._tracker.update(self._fh.tell())
        return data

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._fh.seek(offset, whence)

    def tell(self) -> int:
        return self._fh.tell()

    def seekable(self) -> bool:
        return True

    def readable(self) -> bool:
        return True


def _threadsafe_emitter(
    loop: asyncio.AbstractEventLoop, callback: ProgressCallback | None
) -> ProgressCallback | None:
    """Deliver progress on the event loop thread, in emission order."""
    if callback is None:
        return None

    def invoke(progress: UploadProgress) -> None:
        try:
            callback(progress)
        except Exception:
            logger.exception("upload_progress_callback_failed")

    def emit(progress: UploadProgress) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            invoke(progress)
        else:
            loop.call_soon_threadsafe(invoke, progress)

    return emit


def _positive_int(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive integer")
    return value


class ObjectStorageService:
    """Bucket operations for the stored configuration.

    Every public coroutine returns a :class:`Result`; faults are converted once
    here and never raised to the caller. Task cancellation is the exception:
    it stops any running transfer and propagates ``CancelledError``.
    """

    def __init__(
        self,
        *,
        config_store: ConfigStore | None = None,
        client_factory: ClientFactory | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._config_store = config_store or ConfigStore(settings=self._settings)
        self._connections = ConnectionCache(
            client_factory or self._default_client_factory
        )

    def _default_client_factory(self, config: StorageConfig) -> StorageClient:
        return S3StorageClient(config=config, settings=self._settings)

    @property
    def config_store(self) -> ConfigStore:
        return self._config_store

    def reset_connection(self) -> None:
        """Drop the cached client so the next operation rebuilds it."""
        self._connections.reset()

    @staticmethod
    def _ensure_complete(config: StorageConfig) -> StorageConfig:
        missing = config.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Incomplete configuration, missing: {', '.join(missing)}"
            )
        return config

    def _require_config(self) -> StorageConfig:
        config = self._config_store.read()
        if config is None:
            raise ConfigurationError(
                "Storage is not configured, run `storage-cos config set` first"
            )
        return self._ensure_complete(config)

    @staticmethod
    def _require_key(key: str | None) -> str:
        if not key:
            raise ConfigurationError("Object key is required")
        return key

    def _connect(
        self, config: StorageConfig | None = None
    ) -> tuple[StorageConfig, StorageClient]:
        """Resolve the record and its client; blocking, run in a worker thread."""
        if config is None:
            config = self._require_config()
        else:
            self._ensure_complete(config)
        return config, self._connections.get(config)

    async def test_connection(self, config: StorageConfig) -> Result:
        """Check that ``config`` reaches an existing bucket."""
        try:
            await asyncio.to_thread(self._head_bucket, config)
        except Exception as exc:
            return failure_from("test_connection", exc)
        record_success("test_connection")
        logger.info(
            "connection_ok bucket=%s region=%s",
            config.bucket,
            config.region,
            extra={"extra": {"bucket": config.bucket, "region": config.region}},
        )
        return Result.success()

    def _head_bucket(self, config: StorageConfig) -> None:
        config, client = self._connect(config)
        client.head_bucket(bucket=config.bucket)

    async def list_files(self, prefix: str = "", limit: int | None = None) -> Result:
        """List objects under ``prefix`` in service order."""
        try:
            if limit is None:
                limit = self._settings.COS_DEFAULT_LIST_LIMIT
            limit = _positive_int(limit, "limit")
            files = await asyncio.to_thread(self._list_objects, prefix or "", limit)
        except Exception as exc:
            return failure_from("list", exc)
        record_success("list")
        return Result.success(files=files)

    def _list_objects(self, prefix: str, limit: int) -> list[ObjectRecord]:
        config, client = self._connect()
        return client.list_objects(bucket=config.bucket, prefix=prefix, limit=limit)

    async def upload(
        self,
        local_path: str | os.PathLike[str],
        key: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> Result:
        """Stream a local file to the bucket.

        ``key`` defaults to the file's base name. ``on_progress`` is called on
        the event loop thread with non-decreasing records ending at 100%.
        """
        cancelled = threading.Event()
        tracker: ProgressTracker | None = None
        try:
            path = Path(local_path).expanduser()
            if not path.is_file():
                raise LocalResourceError(f"File not found: {path}")
            object_key = key or path.name
            tracker = ProgressTracker(
                path.stat().st_size,
                _threadsafe_emitter(asyncio.get_running_loop(), on_progress),
            )
            stored = await asyncio.to_thread(
                self._put_file, object_key, path, tracker, cancelled
            )
            tracker.complete()
        except asyncio.CancelledError:
            cancelled.set()
            if tracker is not None:
                tracker.close()
            logger.info("upload_cancelled path=%s", local_path)
            raise
        except Exception as exc:
            if tracker is not None:
                tracker.close()
            return failure_from("upload", exc)

        record_success("upload")
        logger.info(
            "upload_done key=%s size=%s",
            object_key,
            tracker.total,
            extra={"extra": {"key": object_key, "size_bytes": tracker.total}},
        )
        return Result.success(location=stored.location, etag=stored.etag, key=object_key)

    def _put_file(
        self,
        object_key: str,
        path: Path,
        tracker: ProgressTracker,
        cancelled: threading.Event,
    ) -> StoredObject:
        config, client = self._connect()
        try:
            fh = path.open("rb")
        except OSError as exc:
            raise LocalResourceError(f"Cannot open {path}: {exc}") from exc
        with fh:
            return client.put_object(
                bucket=config.bucket,
                object_key=object_key,
                body=_ProgressReader(fh, tracker, cancelled),
                content_length=tracker.total,
            )

    def start_upload(
        self, local_path: str | os.PathLike[str], key: str | None = None
    ) -> "UploadJob":
        """Run :meth:`upload` as a task; must be called with a running loop."""
        return UploadJob(self, local_path, key)

    async def download(self, key: str, output_path: str | os.PathLike[str]) -> Result:
        """Stream an object to ``output_path``, replacing it only on success."""
        cancelled = threading.Event()
        try:
            object_key = self._require_key(key)
            target = Path(output_path).expanduser()
            size = await asyncio.to_thread(
                self._fetch_to_file,
                object_key,
                target,
                self._settings.COS_TRANSFER_CHUNK_SIZE,
                cancelled,
            )
        except asyncio.CancelledError:
            cancelled.set()
            logger.info("download_cancelled key=%s", key)
            raise
        except Exception as exc:
            return failure_from("download", exc)
        record_success("download")
        return Result.success(key=object_key, outputPath=str(target), size=size)

    def _fetch_to_file(
        self,
        object_key: str,
        target: Path,
        chunk_size: int,
        cancelled: threading.Event,
    ) -> int:
        config, client = self._connect()
        written = 0
        tmp_name: str | None = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f".{target.name}.", suffix=".part"
            )
            with os.fdopen(fd, "wb") as fh, contextlib.closing(
                client.iter_object(
                    bucket=config.bucket, object_key=object_key, chunk_size=chunk_size
                )
            ) as chunks:
                for chunk in chunks:
                    if cancelled.is_set():
                        raise TransferCancelled("Download cancelled")
                    fh.write(chunk)
                    written += len(chunk)
            # mkstemp files are owner-only
            os.chmod(tmp_name, NEW_FILE_MODE)
            os.replace(tmp_name, target)
            tmp_name = None
        except OSError as exc:
            raise LocalResourceError(f"Cannot write {target}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass
        return written

    async def delete(self, key: str) -> Result:
        """Delete ``key``; the service decides whether a missing key is an error."""
        try:
            object_key = self._require_key(key)
            await asyncio.to_thread(self._delete_object, object_key)
        except Exception as exc:
            return failure_from("delete", exc)
        record_success("delete")
        return Result.success(key=object_key)

    def _delete_object(self, object_key: str) -> None:
        config, client = self._connect()
        client.delete_object(bucket=config.bucket, object_key=object_key)

    async def signed_url(self, key: str, expires_in: int | None = None) -> Result:
        """Sign a GET URL for ``key`` locally; existence is not checked."""
        try:
            object_key = self._require_key(key)
            if expires_in is None:
                expires_in = self._settings.COS_DEFAULT_URL_EXPIRES
            expires_in = _positive_int(expires_in, "expires")
            url = await asyncio.to_thread(self._presign, object_key, expires_in)
        except Exception as exc:
            return failure_from("signed_url", exc)
        record_success("signed_url")
        return Result.success(url=url, expiresIn=expires_in)

    def _presign(self, object_key: str, expires_in: int) -> str:
        config, client = self._connect()
        return client.presign_download(
            bucket=config.bucket, object_key=object_key, expires_in=expires_in
        )


class UploadJob:
    """An upload running as a task, observable as an async stream of progress.

    ``async for progress in job`` yields records until the upload finishes or
    is cancelled; ``await job.result()`` returns the upload's Result.
    """

    def __init__(
        self,
        service: ObjectStorageService,
        local_path: str | os.PathLike[str],
        key: str | None,
    ):
        self._queue: asyncio.Queue[UploadProgress | None] = asyncio.Queue()
        self._task = asyncio.create_task(
            service.upload(local_path, key, on_progress=self._queue.put_nowait)
        )
        self._task.add_done_callback(lambda _task: self._queue.put_nowait(None))

    def __aiter__(self) -> AsyncIterator[UploadProgress]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[UploadProgress]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        self._task.cancel()

    async def result(self) -> Result:
        return await self._task
