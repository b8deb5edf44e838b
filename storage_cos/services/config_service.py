from __future__ import annotations

from typing import Any, Mapping

from storage_cos.common.masking import mask_config, unmask_config
from storage_cos.common.result import Result
from storage_cos.infra.config_store import ConfigStore, PersistenceError, merge_config
from storage_cos.services.base import failure_from
from storage_cos.services.storage_service import ObjectStorageService


class ConfigService:
    """Configuration use cases shared by the CLI and the HTTP API.

    Incoming records pass through :func:`unmask_config` before they are
    validated, tested or persisted, so masked placeholders never reach the
    store or the remote service.
    """

    def __init__(self, store: ConfigStore, storage: ObjectStorageService):
        self._store = store
        self._storage = storage

    @property
    def store(self) -> ConfigStore:
        return self._store

    def show(self) -> Result:
        loaded = self._store.load()
        if not loaded.ok:
            return loaded
        config = loaded["config"]
        return Result.success(
            config=mask_config(config) if config else None,
            path=str(self._store.path()),
        )

    def save(self, incoming: Mapping[str, Any]) -> Result:
        """Merge a record sent by a client that saw the masked view.

        Omitted or empty fields keep their stored value; masked placeholders
        are resolved against the stored record after the merge.
        """
        try:
            stored = self._store.read()
        except PersistenceError as exc:
            return failure_from("config_save", exc)
        merged = merge_config(stored, incoming)
        return self._store.save(unmask_config(merged.to_dict(), stored))

    def update(self, updates: Mapping[str, Any]) -> Result:
        """Same merge as :meth:`save`, reporting where the record was written."""
        result = self.save(updates)
        if not result.ok:
            return result
        return Result.success(path=str(self._store.path()))

    async def test(self, incoming: Mapping[str, Any] | None = None) -> Result:
        """Test ``incoming`` (masked values resolved), or the stored record."""
        try:
            stored = self._store.read()
        except PersistenceError as exc:
            return failure_from("test_connection", exc)
        if incoming is not None:
            config = unmask_config(incoming, stored)
        elif stored is not None:
            config = stored
        else:
            return Result.failure(
                "Storage is not configured, run `storage-cos config set` first"
            )
        return await self._storage.test_connection(config)
