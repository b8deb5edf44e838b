from __future__ import annotations

from storage_cos.services.bundle import ServiceBundle, get_service_bundle


def get_services() -> ServiceBundle:
    return get_service_bundle()
