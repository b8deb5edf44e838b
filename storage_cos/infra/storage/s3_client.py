"""S3-compatible storage client implementation.

Tencent COS exposes an S3-compatible API, so the client talks to it through
boto3 with an endpoint derived from the bucket region. Any other
S3-compatible service works by changing ``COS_ENDPOINT_TEMPLATE``.

Dependencies:
    - boto3
    - botocore
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, BinaryIO, Generator
from urllib.parse import quote, urlsplit

from storage_cos.domain import ObjectRecord, StorageConfig, StoredObject
from storage_cos.infra.storage.client import StorageError

if TYPE_CHECKING:
    from storage_cos.common.config import Settings

# Largest page the service returns for a single listing request
MAX_KEYS_PER_PAGE = 1000


def _error_message(exc: Exception) -> str:
    """Prefer the service's own error text over the botocore wrapper."""
    response = getattr(exc, "response", None)
    if isinstance(response, dict):
        error = response.get("Error") or {}
        code = error.get("Code")
        message = error.get("Message")
        if code and message:
            return f"{code}: {message}"
    return str(exc)


class S3StorageClient:
    """S3-compatible object storage client bound to one credential pair.

    Uses boto3 for all storage operations. Retries are disabled so every
    operation is a single attempt.
    """

    def __init__(self, *, config: StorageConfig, settings: "Settings") -> None:
        self._config = config
        self._settings = settings
        self._endpoint_url = settings.endpoint_for(config.region)
        self._client = self._build_client(config, settings)

    @property
    def credentials(self) -> tuple[str, str]:
        return self._config.credentials

    @property
    def region(self) -> str:
        return self._config.region

    @staticmethod
    def _build_client(config: StorageConfig, settings: "Settings") -> Any:
        """Create a boto3 S3 client for the configured region."""
        try:
            import boto3
            from botocore.config import Config
        except ImportError as exc:
            raise StorageError(
                "boto3 and botocore are required for the COS storage backend. "
                "Install with: pip install boto3"
            ) from exc

        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": settings.COS_ADDRESSING_STYLE},
            connect_timeout=settings.COS_CONNECT_TIMEOUT,
            read_timeout=settings.COS_READ_TIMEOUT,
            retries={"total_max_attempts": 1, "mode": "standard"},
            # COS rejects aws-chunked bodies with trailing checksums
            request_checksum_calculation="when_required",
            response_checksum_validation="when_required",
        )

        return boto3.client(
            "s3",
            endpoint_url=settings.endpoint_for(config.region),
            region_name=config.region,
            aws_access_key_id=config.secret_id,
            aws_secret_access_key=config.secret_key,
            config=boto_config,
        )

    def object_location(self, *, bucket: str, object_key: str) -> str:
        """Location descriptor in the ``host/key`` form COS reports."""
        parts = urlsplit(self._endpoint_url)
        quoted_key = quote(object_key, safe="/~")
        if self._settings.COS_ADDRESSING_STYLE == "path":
            return f"{parts.netloc}/{bucket}/{quoted_key}"
        return f"{bucket}.{parts.netloc}/{quoted_key}"

    def head_bucket(self, *, bucket: str) -> None:
        """Check that the bucket exists and is accessible."""
        try:
            self._client.head_bucket(Bucket=bucket)
        except Exception as exc:
            raise StorageError(
                f"Failed to access bucket: {_error_message(exc)}"
            ) from exc

    def put_object(
        self,
        *,
        bucket: str,
        object_key: str,
        body: BinaryIO,
        content_length: int,
    ) -> StoredObject:
        """Upload a stream as a single object."""
        try:
            response = self._client.put_object(
                Bucket=bucket,
                Key=object_key,
                Body=body,
                ContentLength=int(content_length),
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to upload object: {_error_message(exc)}"
            ) from exc

        return StoredObject(
            location=self.object_location(bucket=bucket, object_key=object_key),
            etag=response.get("ETag"),
        )

    def iter_object(
        self,
        *,
        bucket: str,
        object_key: str,
        chunk_size: int,
    ) -> Generator[bytes, None, None]:
        """Stream object content; the HTTP body is closed on every exit path."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise StorageError(
                f"Failed to download object: {_error_message(exc)}"
            ) from exc

        body = response["Body"]
        try:
            for chunk in body.iter_chunks(chunk_size=chunk_size):
                yield chunk
        except Exception as exc:
            raise StorageError(
                f"Failed to download object: {_error_message(exc)}"
            ) from exc
        finally:
            body.close()

    def list_objects(
        self,
        *,
        bucket: str,
        prefix: str,
        limit: int,
    ) -> list[ObjectRecord]:
        """List objects page by page until ``limit`` entries are collected."""
        records: list[ObjectRecord] = []
        marker: str | None = None
        while len(records) < limit:
            params: dict[str, Any] = {
                "Bucket": bucket,
                "Prefix": prefix,
                "MaxKeys": min(MAX_KEYS_PER_PAGE, limit - len(records)),
            }
            if marker:
                params["Marker"] = marker
            try:
                response = self._client.list_objects(**params)
            except Exception as exc:
                raise StorageError(
                    f"Failed to list objects: {_error_message(exc)}"
                ) from exc

            contents = response.get("Contents") or []
            for item in contents:
                records.append(
                    ObjectRecord(
                        key=item["Key"],
                        size=int(item.get("Size") or 0),
                        last_modified=item.get("LastModified"),
                        etag=item.get("ETag"),
                    )
                )

            if not response.get("IsTruncated") or not contents:
                break
            marker = response.get("NextMarker") or contents[-1]["Key"]

        return records[:limit]

    def delete_object(self, *, bucket: str, object_key: str) -> None:
        """Delete an object from storage."""
        try:
            self._client.delete_object(Bucket=bucket, Key=object_key)
        except Exception as exc:
            raise StorageError(
                f"Failed to delete object: {_error_message(exc)}"
            ) from exc

    def presign_download(
        self,
        *,
        bucket: str,
        object_key: str,
        expires_in: int,
    ) -> str:
        """Generate a presigned URL for downloading an object."""
        try:
            url = self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": object_key},
                ExpiresIn=int(expires_in),
            )
        except Exception as exc:
            raise StorageError(
                f"Failed to generate download URL: {_error_message(exc)}"
            ) from exc

        if not url:
            raise StorageError("Generated presigned URL is empty")

        return str(url)
