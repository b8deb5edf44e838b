from .base import (
    ConfigurationError,
    LocalResourceError,
    ServiceError,
    TransferCancelled,
)
from .bundle import ServiceBundle, get_service_bundle
from .config_service import ConfigService
from .storage_service import (
    ObjectStorageService,
    ProgressTracker,
    UploadJob,
)

__all__ = [
    "ConfigService",
    "ConfigurationError",
    "LocalResourceError",
    "ObjectStorageService",
    "ProgressTracker",
    "ServiceBundle",
    "ServiceError",
    "TransferCancelled",
    "UploadJob",
    "get_service_bundle",
]
