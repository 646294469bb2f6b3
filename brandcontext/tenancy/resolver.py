"""Resolve the brand an inbound request belongs to."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from brandcontext.tenancy.context import set_current_brand

if TYPE_CHECKING:
    from brandcontext.models.domain import RequestSignals
    from brandcontext.tenancy.registry import BrandRegistry

logger = structlog.get_logger(__name__)


class TenantResolver:
    """Pick a brand from request signals.

    Precedence: explicit brand header, then session brand, then host.
    Unknown values are skipped; no usable signal means the default brand.
    """

    def __init__(self, registry: BrandRegistry) -> None:
        self._registry = registry

    def resolve(self, signals: RequestSignals) -> str:
        brand = self._pick(signals)
        set_current_brand(brand)
        return brand

    def _pick(self, signals: RequestSignals) -> str:
        for source, candidate in (
            ("header", signals.brand_header),
            ("session", signals.session_brand),
        ):
            key = (candidate or "").strip().lower()
            if not key:
                continue
            if self._registry.is_known(key):
                return key
            logger.debug("brand_signal_ignored", source=source, value=candidate)

        host_brand = self._registry.brand_for_host(signals.host)
        if host_brand:
            return host_brand

        return self._registry.default.key
