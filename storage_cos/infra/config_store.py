"""Persistence of the single storage configuration record.

The record lives in a user scoped JSON file (``~/.najie/storage-cos.json`` by
default) so every working directory sees the same configuration. There is no
locking: concurrent saves race and the last writer wins.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping

from storage_cos.common.config import Settings, get_settings
from storage_cos.common.result import Result
from storage_cos.domain import CONFIG_FIELDS, StorageConfig

logger = logging.getLogger(__name__)


class PersistenceError(RuntimeError):
    """Raised when the configuration record cannot be read or written."""


def merge_config(
    previous: StorageConfig | None, updates: Mapping[str, Any]
) -> StorageConfig:
    """Field-wise merge: empty or omitted fields keep their previous value."""
    base = previous.to_dict() if previous else {name: "" for name in CONFIG_FIELDS}
    for name in CONFIG_FIELDS:
        value = updates.get(name)
        if value not in (None, ""):
            base[name] = value
    return StorageConfig.from_mapping(base)


class ConfigStore:
    def __init__(self, path: Path | None = None, *, settings: Settings | None = None):
        if path is None:
            path = (settings or get_settings()).config_path
        self._path = Path(path)

    def path(self) -> Path:
        return self._path

    def read(self) -> StorageConfig | None:
        """Return the stored record, ``None`` when nothing was saved yet.

        Raises:
            PersistenceError: If the file exists but cannot be read or parsed.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"Failed to read config: {exc}") from exc

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Failed to parse config: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError("Failed to parse config: expected a JSON object")
        return StorageConfig.from_mapping(data)

    def write(self, config: StorageConfig) -> None:
        """Replace the stored record.

        Raises:
            PersistenceError: If the directory or file cannot be written.
        """
        payload = json.dumps(config.to_dict(), indent=2, ensure_ascii=False)
        tmp_name: str | None = None
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self._path)
            tmp_name = None
        except OSError as exc:
            raise PersistenceError(f"Failed to write config: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass

    def load(self) -> Result:
        try:
            config = self.read()
        except PersistenceError as exc:
            logger.warning(
                "config_load_failed path=%s error=%s",
                self._path,
                exc,
                extra={"extra": {"path": str(self._path), "error": str(exc)}},
            )
            return Result.failure(str(exc))
        return Result.success(config=config)

    def save(self, config: StorageConfig) -> Result:
        try:
            self.write(config)
        except PersistenceError as exc:
            logger.warning(
                "config_save_failed path=%s error=%s",
                self._path,
                exc,
                extra={"extra": {"path": str(self._path), "error": str(exc)}},
            )
            return Result.failure(str(exc))
        logger.info(
            "config_saved path=%s complete=%s",
            self._path,
            config.is_complete,
            extra={"extra": {"path": str(self._path), "complete": config.is_complete}},
        )
        return Result.success()
