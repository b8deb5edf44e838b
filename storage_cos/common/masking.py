"""Secret masking applied where configuration crosses the trust boundary.

Outward, the secret key is replaced by ``MASK_SENTINEL`` and the secret id is
shortened to a recognizable prefix. Inward, a value equal to what was shown
outward means "unchanged": it is swapped for the stored value before anything
validates or uses it.
"""

from __future__ import annotations

from typing import Any, Mapping

from storage_cos.domain import StorageConfig

MASK_SENTINEL = "********"
SECRET_ID_VISIBLE_CHARS = 8
SECRET_ID_MASK_SUFFIX = "****"
NOT_CONFIGURED = "(not configured)"


def mask_secret_id(secret_id: str) -> str | None:
    if not secret_id:
        return None
    return secret_id[:SECRET_ID_VISIBLE_CHARS] + SECRET_ID_MASK_SUFFIX


def mask_secret_key(secret_key: str) -> str | None:
    if not secret_key:
        return None
    return MASK_SENTINEL


def mask_config(config: StorageConfig) -> dict[str, str | None]:
    """Outward representation; absent values are ``None``."""
    return {
        "secretId": mask_secret_id(config.secret_id),
        "secretKey": mask_secret_key(config.secret_key),
        "bucket": config.bucket or None,
        "region": config.region or None,
    }


def display_config(config: StorageConfig) -> dict[str, str]:
    """Human facing variant of :func:`mask_config`."""
    return {
        name: value if value is not None else NOT_CONFIGURED
        for name, value in mask_config(config).items()
    }


def unmask_config(
    incoming: Mapping[str, Any], stored: StorageConfig | None
) -> StorageConfig:
    """Resolve masked placeholders in an incoming record against the stored one.

    ``secretKey == MASK_SENTINEL`` becomes the stored secret key, or an empty
    value when nothing is stored. A ``secretId`` equal to the masked form of
    the stored id is restored the same way.
    """
    config = StorageConfig.from_mapping(incoming)
    secret_key = config.secret_key
    secret_id = config.secret_id

    if secret_key == MASK_SENTINEL:
        secret_key = stored.secret_key if stored else ""
    if stored and secret_id and secret_id == mask_secret_id(stored.secret_id):
        secret_id = stored.secret_id

    return StorageConfig(
        secret_id=secret_id,
        secret_key=secret_key,
        bucket=config.bucket,
        region=config.region,
    )
