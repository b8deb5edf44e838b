from .models import (
    CONFIG_FIELDS,
    ObjectRecord,
    StorageConfig,
    StoredObject,
    UploadProgress,
)

__all__ = [
    "CONFIG_FIELDS",
    "ObjectRecord",
    "StorageConfig",
    "StoredObject",
    "UploadProgress",
]
