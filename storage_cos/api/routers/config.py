"""Configuration API router.

The stored secret never leaves the process: reads return the masked view and
writes accept the masking sentinel as "unchanged".
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from storage_cos.api.deps import get_services
from storage_cos.api.schemas import ConfigIn, ConfigOut, EnvelopeOut
from storage_cos.services.bundle import ServiceBundle

router = APIRouter()


@router.get(
    "/config",
    response_model=ConfigOut,
    response_model_exclude_unset=True,
    summary="Get configuration",
    description="Return the stored configuration with secrets masked.",
)
def get_config(services: ServiceBundle = Depends(get_services)) -> ConfigOut:
    result = services.config().show()
    return ConfigOut(**result.to_dict())


@router.post(
    "/config",
    response_model=EnvelopeOut,
    response_model_exclude_unset=True,
    summary="Save configuration",
    description=(
        "Merge into the stored configuration: omitted or empty fields and a "
        "masked secretKey keep their stored values."
    ),
)
def save_config(
    payload: ConfigIn,
    services: ServiceBundle = Depends(get_services),
) -> EnvelopeOut:
    result = services.config().save(payload.to_mapping())
    return EnvelopeOut(**result.to_dict())


@router.post(
    "/config/test",
    response_model=EnvelopeOut,
    response_model_exclude_unset=True,
    summary="Test configuration",
    description="Check that the given configuration can access its bucket.",
)
async def test_config(
    payload: ConfigIn,
    services: ServiceBundle = Depends(get_services),
) -> EnvelopeOut:
    result = await services.config().test(payload.to_mapping())
    return EnvelopeOut(**result.to_dict())
