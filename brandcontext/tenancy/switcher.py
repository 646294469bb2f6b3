"""Storage context switching: point shared storage at one brand."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import TYPE_CHECKING

import structlog

from brandcontext.tenancy.context import set_current_brand

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from brandcontext.config.settings import Settings
    from brandcontext.models.domain import BrandDescriptor
    from brandcontext.storage.cache import CacheManager, PrefixedCache
    from brandcontext.storage.database import ConnectionRegistry
    from brandcontext.tenancy.registry import BrandRegistry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class StorageContext:
    """Storage handles for one unit of work, all bound to the same brand.

    Passed explicitly to every storage-touching call. The engine and cache
    handle are fixed at switch time, so a later switch on the same process
    cannot change what an existing context reads or writes.
    """

    brand: str
    descriptor: BrandDescriptor
    connection: str
    engine: AsyncEngine
    cache: PrefixedCache


class StorageSwitcher:
    """Repoint the process-wide default connection and cache prefix to a brand."""

    def __init__(
        self,
        registry: BrandRegistry,
        connections: ConnectionRegistry,
        cache: CacheManager,
    ) -> None:
        self._registry = registry
        self._connections = connections
        self._cache = cache

    @property
    def registry(self) -> BrandRegistry:
        return self._registry

    @property
    def connections(self) -> ConnectionRegistry:
        return self._connections

    @property
    def cache(self) -> CacheManager:
        return self._cache

    def apply_brand(self, brand_key: str | None) -> StorageContext:
        """Switch shared storage to a brand and return the matching context.

        Runs the full switch on every call, even when the brand is unchanged.
        Unknown keys switch to the default brand. Errors propagate.
        """
        descriptor = self._registry.descriptor_for(brand_key)
        previous_connection = self._connections.default
        previous_prefix = self._cache.prefix

        self._connections.set_default(descriptor.connection)
        self._cache.set_prefix(descriptor.cache_prefix)
        self._cache.forget_driver()
        set_current_brand(descriptor.key)
        structlog.contextvars.bind_contextvars(brand=descriptor.key)

        context = StorageContext(
            brand=descriptor.key,
            descriptor=descriptor,
            connection=descriptor.connection,
            engine=self._connections.engine(descriptor.connection),
            cache=self._cache.store(),
        )
        logger.debug(
            "brand_applied",
            requested=brand_key,
            connection=descriptor.connection,
            previous_connection=previous_connection,
            cache_prefix=descriptor.cache_prefix,
            previous_prefix=previous_prefix,
        )
        return context


def build_switcher(settings: Settings) -> StorageSwitcher:
    """Build the registry, connections and cache for a process.

    Raises ConfigError when the brand table cannot serve the default brand.
    """
    from brandcontext.storage.cache import CacheManager, create_cache_backend
    from brandcontext.storage.database import ConnectionRegistry
    from brandcontext.tenancy.registry import BrandRegistry

    registry = BrandRegistry.from_settings(settings)
    default = registry.default
    connections = ConnectionRegistry(
        settings.database_connections, default.connection, echo=settings.debug
    )
    cache = CacheManager(create_cache_backend(settings), default.cache_prefix)
    return StorageSwitcher(registry, connections, cache)


@lru_cache
def get_switcher() -> StorageSwitcher:
    """Return the process-wide storage switcher."""
    from brandcontext.config.settings import get_settings

    return build_switcher(get_settings())
