"""Logging setup shared by the HTTP server and the CLI.

The server emits one JSON object per line; the CLI uses plain text so log
lines stay readable next to command output. Both write to stderr, leaving
stdout to command results.
"""

import json
import logging
from datetime import datetime, timezone
from logging.config import dictConfig
from typing import Any

PLAIN_FORMAT = "%(levelname)s %(name)s: %(message)s"
STARTUP_LOGGER = "storage_cos.startup"


def build_logging_config(level: str = "INFO", *, json_output: bool = True) -> dict[str, Any]:
    console_formatter = "json" if json_output else "plain"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JsonFormatter},
            "plain": {"format": PLAIN_FORMAT},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": console_formatter,
            },
            "startup": {
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "plain",
            },
        },
        "root": {"level": level.upper(), "handlers": ["stderr"]},
        "loggers": {
            # boto noise drowns out operation logs at DEBUG
            "botocore": {"level": "WARNING"},
            "boto3": {"level": "WARNING"},
            "urllib3": {"level": "WARNING"},
            STARTUP_LOGGER: {
                "handlers": ["startup"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }


def setup_logging(level: str = "INFO", *, json_output: bool = True) -> None:
    dictConfig(build_logging_config(level, json_output=json_output))


class JsonFormatter(logging.Formatter):
    """Render a record and its ``extra={"extra": {...}}`` fields as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        structured = getattr(record, "extra", None)
        if isinstance(structured, dict):
            payload.update(structured)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
