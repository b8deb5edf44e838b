from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from storage_cos.domain import StorageConfig
from storage_cos.infra.storage.client import StorageClient

logger = logging.getLogger(__name__)

ClientFactory = Callable[[StorageConfig], StorageClient]


class ConnectionCache:
    """Holds the most recent storage client, keyed by credentials and region.

    A request with the same ``(secret_id, secret_key, region)`` reuses the
    cached client; anything else replaces it. Lookups come from worker
    threads, so building and swapping happen under a lock.
    """

    def __init__(self, factory: ClientFactory):
        self._factory = factory
        self._lock = threading.Lock()
        self._key: tuple[str, str, str] | None = None
        self._client: StorageClient | None = None

    @staticmethod
    def _key_for(config: StorageConfig) -> tuple[str, str, str]:
        return config.secret_id, config.secret_key, config.region

    def get(self, config: StorageConfig) -> StorageClient:
        key = self._key_for(config)
        with self._lock:
            if self._client is None or self._key != key:
                logger.debug(
                    "storage_client_build region=%s rebuild=%s",
                    config.region,
                    self._client is not None,
                )
                self._client = self._factory(config)
                self._key = key
            return self._client

    def reset(self) -> None:
        with self._lock:
            self._client = None
            self._key = None
