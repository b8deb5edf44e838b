"""File API router.

Storage failures come back as ``{"ok": false, "error": ...}`` with status 200;
only malformed requests use a client error status.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from storage_cos.api.deps import get_services
from storage_cos.api.schemas import DeleteOut, FileListOut, SignedUrlOut
from storage_cos.services.bundle import ServiceBundle

router = APIRouter()


@router.get(
    "/files",
    response_model=FileListOut,
    response_model_exclude_unset=True,
    summary="List files",
    description="List objects in the configured bucket, optionally by key prefix.",
)
async def list_files(
    prefix: str = Query(default=""),
    limit: int | None = Query(default=None, ge=1),
    services: ServiceBundle = Depends(get_services),
) -> FileListOut:
    result = await services.storage().list_files(prefix, limit)
    return FileListOut(**result.to_dict())


@router.get(
    "/files/url",
    response_model=SignedUrlOut,
    response_model_exclude_unset=True,
    summary="Get signed URL",
    description="Generate a time-limited signed download URL for an object.",
)
async def get_file_url(
    key: str | None = Query(default=None),
    expires: int | None = Query(default=None, ge=1),
    services: ServiceBundle = Depends(get_services),
) -> SignedUrlOut:
    if not key:
        raise HTTPException(status_code=400, detail="Missing key parameter")
    result = await services.storage().signed_url(key, expires)
    return SignedUrlOut(**result.to_dict())


@router.delete(
    "/files/{key:path}",
    response_model=DeleteOut,
    response_model_exclude_unset=True,
    summary="Delete file",
    description="Delete an object; the key may contain slashes.",
)
async def delete_file(
    key: str,
    services: ServiceBundle = Depends(get_services),
) -> DeleteOut:
    result = await services.storage().delete(key)
    return DeleteOut(**result.to_dict())
