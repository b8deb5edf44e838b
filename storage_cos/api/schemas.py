"""Pydantic schemas for the HTTP API.

Every response is a Result envelope: ``ok`` plus either the operation payload
or ``error``. Field names on the wire are camelCase.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ConfigIn(BaseModel):
    """Request body for saving or testing a configuration.

    ``secretKey`` may be the masking sentinel, meaning "keep the stored one".
    """

    model_config = ConfigDict(populate_by_name=True)

    secret_id: str | None = Field(default=None, alias="secretId", max_length=256)
    secret_key: str | None = Field(default=None, alias="secretKey", max_length=256)
    bucket: str | None = Field(default=None, max_length=256)
    region: str | None = Field(default=None, max_length=64)

    def to_mapping(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class EnvelopeOut(BaseModel):
    ok: bool
    error: str | None = None


class MaskedConfigOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    secret_id: str | None = Field(default=None, alias="secretId")
    secret_key: str | None = Field(default=None, alias="secretKey")
    bucket: str | None = None
    region: str | None = None


class ConfigOut(EnvelopeOut):
    config: MaskedConfigOut | None = None
    path: str | None = None


class FileOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    size: int = Field(ge=0)
    last_modified: str | None = Field(default=None, alias="lastModified")
    etag: str | None = None


class FileListOut(EnvelopeOut):
    files: list[FileOut] | None = None


class SignedUrlOut(EnvelopeOut):
    model_config = ConfigDict(populate_by_name=True)

    url: str | None = None
    expires_in: int | None = Field(default=None, alias="expiresIn")


class DeleteOut(EnvelopeOut):
    key: str | None = None
