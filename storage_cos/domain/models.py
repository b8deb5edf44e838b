from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

# On-disk / wire field names, in display order.
CONFIG_FIELDS: tuple[str, ...] = ("secretId", "secretKey", "bucket", "region")


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Credentials and target bucket for the remote object storage."""

    secret_id: str = ""
    secret_key: str = ""
    bucket: str = ""
    region: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "StorageConfig":
        data = data or {}
        return cls(
            secret_id=_as_text(data.get("secretId")),
            secret_key=_as_text(data.get("secretKey")),
            bucket=_as_text(data.get("bucket")),
            region=_as_text(data.get("region")),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "secretId": self.secret_id,
            "secretKey": self.secret_key,
            "bucket": self.bucket,
            "region": self.region,
        }

    def missing_fields(self) -> list[str]:
        return [name for name, value in self.to_dict().items() if not value]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    @property
    def credentials(self) -> tuple[str, str]:
        return self.secret_id, self.secret_key


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True, slots=True)
class ObjectRecord:
    """One entry of a bucket listing."""

    key: str
    size: int
    last_modified: datetime | None
    etag: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "size": self.size,
            "lastModified": (
                self.last_modified.isoformat() if self.last_modified else None
            ),
            "etag": self.etag,
        }


@dataclass(frozen=True, slots=True)
class UploadProgress:
    percent: float
    loaded: int
    total: int

    def to_dict(self) -> dict[str, Any]:
        return {"percent": self.percent, "loaded": self.loaded, "total": self.total}


@dataclass(frozen=True, slots=True)
class StoredObject:
    """What the remote service reports back for a completed PUT."""

    location: str
    etag: str | None
