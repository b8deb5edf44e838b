"""Object storage abstraction layer.

This module provides a protocol-based abstraction for object storage backends,
with an S3-compatible implementation used for Tencent COS.
"""

from .client import StorageClient, StorageError
from .connection import ClientFactory, ConnectionCache
from .s3_client import S3StorageClient

__all__ = [
    "ClientFactory",
    "ConnectionCache",
    "S3StorageClient",
    "StorageClient",
    "StorageError",
]
