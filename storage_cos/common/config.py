from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_CONFIG_DIR = Path.home() / ".najie"
DEFAULT_ENDPOINT_TEMPLATE = "https://cos.{region}.myqcloud.com"
ADDRESSING_STYLES = ("virtual", "path", "auto")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


def _as_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _as_path(value: str | None, default: Path) -> Path:
    if not value:
        return default
    return Path(value).expanduser()


@dataclass
class Settings:
    COS_CONFIG_DIR: Path = DEFAULT_CONFIG_DIR
    COS_CONFIG_FILENAME: str = "storage-cos.json"
    COS_ENDPOINT_TEMPLATE: str = DEFAULT_ENDPOINT_TEMPLATE
    COS_ADDRESSING_STYLE: str = "virtual"
    COS_CONNECT_TIMEOUT: int = 10
    COS_READ_TIMEOUT: int = 60
    COS_DEFAULT_LIST_LIMIT: int = 1000
    COS_DEFAULT_URL_EXPIRES: int = 3600
    COS_TRANSFER_CHUNK_SIZE: int = 1024 * 1024
    SERVER_HOST: str = "127.0.0.1"
    SERVER_PORT: int = 5175
    PID_FILE: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "najie-storage-cos.pid"
    )
    ENABLE_METRICS: bool = True
    CORS_ENABLED: bool = True
    CORS_ORIGINS: list[str] = field(default_factory=list)
    TRACE_HTTP: bool = False
    LOG_LEVEL: str = "INFO"

    def __post_init__(self) -> None:
        if "{region}" not in self.COS_ENDPOINT_TEMPLATE:
            raise ValueError(
                "COS_ENDPOINT_TEMPLATE must contain a {region} placeholder."
            )
        style = self.COS_ADDRESSING_STYLE.strip().lower()
        if style not in ADDRESSING_STYLES:
            raise ValueError(
                f"COS_ADDRESSING_STYLE must be one of {', '.join(ADDRESSING_STYLES)}."
            )
        self.COS_ADDRESSING_STYLE = style
        self.LOG_LEVEL = self.LOG_LEVEL.strip().upper()
        if self.LOG_LEVEL not in LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}.")
        for name in (
            "COS_DEFAULT_LIST_LIMIT",
            "COS_DEFAULT_URL_EXPIRES",
            "COS_TRANSFER_CHUNK_SIZE",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be a positive integer.")

    @property
    def config_path(self) -> Path:
        return self.COS_CONFIG_DIR / self.COS_CONFIG_FILENAME

    def endpoint_for(self, region: str) -> str:
        return self.COS_ENDPOINT_TEMPLATE.format(region=region)

    @classmethod
    def from_environment(cls) -> "Settings":
        pid_file_env = os.environ.get("PID_FILE")
        extra: dict[str, object] = {}
        if pid_file_env:
            extra["PID_FILE"] = Path(pid_file_env).expanduser()

        return cls(
            COS_CONFIG_DIR=_as_path(
                os.environ.get("COS_CONFIG_DIR"), cls.COS_CONFIG_DIR
            ),
            COS_CONFIG_FILENAME=os.environ.get(
                "COS_CONFIG_FILENAME", cls.COS_CONFIG_FILENAME
            ),
            COS_ENDPOINT_TEMPLATE=os.environ.get(
                "COS_ENDPOINT_TEMPLATE", cls.COS_ENDPOINT_TEMPLATE
            ),
            COS_ADDRESSING_STYLE=os.environ.get(
                "COS_ADDRESSING_STYLE", cls.COS_ADDRESSING_STYLE
            ),
            COS_CONNECT_TIMEOUT=int(
                os.environ.get("COS_CONNECT_TIMEOUT", cls.COS_CONNECT_TIMEOUT)
            ),
            COS_READ_TIMEOUT=int(
                os.environ.get("COS_READ_TIMEOUT", cls.COS_READ_TIMEOUT)
            ),
            COS_DEFAULT_LIST_LIMIT=int(
                os.environ.get("COS_DEFAULT_LIST_LIMIT", cls.COS_DEFAULT_LIST_LIMIT)
            ),
            COS_DEFAULT_URL_EXPIRES=int(
                os.environ.get("COS_DEFAULT_URL_EXPIRES", cls.COS_DEFAULT_URL_EXPIRES)
            ),
            COS_TRANSFER_CHUNK_SIZE=int(
                os.environ.get("COS_TRANSFER_CHUNK_SIZE", cls.COS_TRANSFER_CHUNK_SIZE)
            ),
            SERVER_HOST=os.environ.get("SERVER_HOST", cls.SERVER_HOST),
            SERVER_PORT=int(os.environ.get("SERVER_PORT", cls.SERVER_PORT)),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
            CORS_ENABLED=_as_bool(os.environ.get("CORS_ENABLED"), cls.CORS_ENABLED),
            CORS_ORIGINS=_as_list(os.environ.get("CORS_ORIGINS")),
            TRACE_HTTP=_as_bool(os.environ.get("TRACE_HTTP"), cls.TRACE_HTTP),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL),
            **extra,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()


def load_server_settings() -> Settings:
    """Settings for the HTTP server, which also reads ``.env`` from the cwd.

    CLI commands never look at ``.env``; only ``serve`` does, so the file is
    applied here and the cached settings are rebuilt from it.
    """
    _load_env_file()
    get_settings.cache_clear()  # type: ignore[attr-defined]
    return get_settings()
