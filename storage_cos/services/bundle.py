from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from storage_cos.common.config import Settings, get_settings
from storage_cos.infra.config_store import ConfigStore
from storage_cos.infra.storage import ClientFactory

from .config_service import ConfigService
from .storage_service import ObjectStorageService


@dataclass
class ServiceBundle:
    """Lazily constructs application services sharing one config store."""

    settings: Settings
    client_factory: ClientFactory | None = None
    _store: ConfigStore | None = field(default=None, init=False, repr=False)
    _storage: ObjectStorageService | None = field(default=None, init=False, repr=False)
    _config: ConfigService | None = field(default=None, init=False, repr=False)

    def store(self) -> ConfigStore:
        if self._store is None:
            self._store = ConfigStore(settings=self.settings)
        return self._store

    def storage(self) -> ObjectStorageService:
        if self._storage is None:
            self._storage = ObjectStorageService(
                config_store=self.store(),
                client_factory=self.client_factory,
                settings=self.settings,
            )
        return self._storage

    def config(self) -> ConfigService:
        if self._config is None:
            self._config = ConfigService(self.store(), self.storage())
        return self._config


@lru_cache(maxsize=1)
def get_service_bundle() -> ServiceBundle:
    """Process wide bundle, so the storage connection is reused across requests."""
    return ServiceBundle(settings=get_settings())
