"""Brand registry: brand key -> storage coordinates and display metadata."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from functools import lru_cache
from types import MappingProxyType
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from brandcontext.exceptions import ConfigError
from brandcontext.models.domain import BrandDescriptor

if TYPE_CHECKING:
    from brandcontext.config.settings import Settings

logger = structlog.get_logger(__name__)


class BrandRegistry:
    """Read-only brand table, loaded once per process.

    ``descriptor_for`` is total: unknown or empty keys resolve to the default
    brand. A table that cannot produce the default brand is rejected at
    construction with :class:`ConfigError`.
    """

    def __init__(self, descriptors: Iterable[BrandDescriptor], default_key: str) -> None:
        table: dict[str, BrandDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.key in table:
                msg = f"Duplicate brand descriptor: {descriptor.key}"
                raise ConfigError(msg)
            if not descriptor.connection or not descriptor.cache_prefix:
                msg = f"Brand {descriptor.key} needs a connection name and a cache prefix"
                raise ConfigError(msg)
            table[descriptor.key] = descriptor

        if default_key not in table:
            msg = f"Default brand {default_key!r} has no descriptor"
            raise ConfigError(msg)

        self._descriptors: Mapping[str, BrandDescriptor] = MappingProxyType(table)
        self._default_key = default_key

    @classmethod
    def from_settings(cls, settings: Settings) -> BrandRegistry:
        """Build the registry and check every brand points at a configured connection."""
        try:
            descriptors = [
                BrandDescriptor(key=key, **config) for key, config in settings.brands.items()
            ]
        except (TypeError, ValidationError) as exc:
            msg = f"Invalid brand configuration: {exc}"
            raise ConfigError(msg) from exc

        for descriptor in descriptors:
            if descriptor.connection not in settings.database_connections:
                msg = (
                    f"Brand {descriptor.key} uses connection {descriptor.connection!r} "
                    "which is not configured"
                )
                raise ConfigError(msg)

        registry = cls(descriptors, settings.default_brand)
        logger.info("brand_registry_loaded", brands=registry.keys(), default=settings.default_brand)
        return registry

    @property
    def default(self) -> BrandDescriptor:
        return self._descriptors[self._default_key]

    def keys(self) -> list[str]:
        return list(self._descriptors)

    def is_known(self, brand_key: str | None) -> bool:
        return brand_key is not None and brand_key in self._descriptors

    def descriptor_for(self, brand_key: str | None) -> BrandDescriptor:
        """Return the descriptor for a brand, falling back to the default brand."""
        if brand_key and brand_key in self._descriptors:
            return self._descriptors[brand_key]
        return self.default

    def code_from_industry(self, industry_code: str | None) -> str | None:
        """Return the brand that serves an industry, or None when no brand claims it."""
        if not industry_code:
            return None
        for descriptor in self._descriptors.values():
            if industry_code in descriptor.industries:
                return descriptor.key
        return None

    def brand_for_host(self, host: str | None) -> str | None:
        """Match a request host against brand domains (subdomains included)."""
        if not host:
            return None
        hostname = host.split(":", 1)[0].strip().lower().rstrip(".")
        for descriptor in self._descriptors.values():
            for domain in (descriptor.domain, descriptor.frontend_domain):
                if not domain:
                    continue
                if hostname == domain or hostname.endswith("." + domain):
                    return descriptor.key
        return None


@lru_cache
def get_brand_registry() -> BrandRegistry:
    """Return the process-wide brand registry."""
    from brandcontext.config.settings import get_settings

    return BrandRegistry.from_settings(get_settings())
