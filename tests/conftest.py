from __future__ import annotations

import pytest

from storage_cos.common.config import Settings, get_settings
from storage_cos.domain import StorageConfig
from storage_cos.infra.config_store import ConfigStore
from storage_cos.services.bundle import ServiceBundle, get_service_bundle
from storage_cos.services.storage_service import ObjectStorageService

from tests.services.mock_storage import MockClientFactory

COMPLETE_CONFIG = StorageConfig(
    secret_id="AKIDEXAMPLE123",
    secret_key="SK1",
    bucket="b-1234567890",
    region="ap-guangzhou",
)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.najie directory."""
    monkeypatch.setenv("COS_CONFIG_DIR", str(tmp_path / "home" / ".najie"))
    monkeypatch.setenv("PID_FILE", str(tmp_path / "storage-cos.pid"))
    monkeypatch.delenv("TRACE_HTTP", raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_service_bundle.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]
    get_service_bundle.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def store(settings) -> ConfigStore:
    return ConfigStore(settings=settings)


@pytest.fixture
def factory() -> MockClientFactory:
    return MockClientFactory()


@pytest.fixture
def configured_store(store) -> ConfigStore:
    store.write(COMPLETE_CONFIG)
    return store


@pytest.fixture
def service(configured_store, factory, settings) -> ObjectStorageService:
    return ObjectStorageService(
        config_store=configured_store, client_factory=factory, settings=settings
    )


@pytest.fixture
def bundle(settings, factory) -> ServiceBundle:
    return ServiceBundle(settings=settings, client_factory=factory)
