from __future__ import annotations

import logging

from storage_cos.common.result import Result
from storage_cos.infra.config_store import PersistenceError
from storage_cos.infra.observability.metrics import STORAGE_OPERATIONS
from storage_cos.infra.storage.client import StorageError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """Base class for application service level exceptions."""


class ConfigurationError(ServiceError):
    """Raised when credentials, bucket, region or arguments are unusable."""


class LocalResourceError(ServiceError):
    """Raised when a local file is missing or cannot be written."""


class TransferCancelled(ServiceError):
    """Raised inside a worker thread to abort a cancelled transfer."""


EXPECTED_ERRORS = (ServiceError, StorageError, PersistenceError)


def failure_from(operation: str, exc: Exception) -> Result:
    """Convert a fault caught at the service boundary into a failure Result."""
    if isinstance(exc, EXPECTED_ERRORS):
        logger.warning(
            "storage_operation_failed operation=%s error=%s",
            operation,
            exc,
            extra={"extra": {"operation": operation, "error": str(exc)}},
        )
    else:
        logger.exception(
            "storage_operation_error operation=%s",
            operation,
            extra={"extra": {"operation": operation, "exception": repr(exc)}},
        )
    STORAGE_OPERATIONS.labels(operation, "failure").inc()
    return Result.failure(str(exc) or exc.__class__.__name__)


def record_success(operation: str) -> None:
    STORAGE_OPERATIONS.labels(operation, "success").inc()
