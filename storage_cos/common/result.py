"""Uniform outcome type returned by every storage and config operation.

A ``Result`` is either a success carrying an operation specific payload or a
failure carrying a single human readable message. Callers render it without
ever catching exceptions from the operation itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Result:
    """Success/failure envelope serialized as ``{"ok": ..., ...}``."""

    ok: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def success(cls, **data: Any) -> "Result":
        return cls(ok=True, data=dict(data))

    @classmethod
    def failure(cls, error: str) -> "Result":
        return cls(ok=False, error=error or "Unknown error")

    def __getitem__(self, name: str) -> Any:
        return self.data[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        if not self.ok:
            return {"ok": False, "error": self.error}
        return {"ok": True, **{k: _jsonable(v) for k, v in self.data.items()}}


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value
