"""Inter-module data contracts (not persisted directly)."""

from pydantic import BaseModel, ConfigDict


class BrandDescriptor(BaseModel):
    """Storage coordinates and display metadata for one brand."""

    model_config = ConfigDict(frozen=True)

    key: str
    connection: str
    cache_prefix: str
    display_name: str
    logo_url: str | None = None
    domain: str | None = None
    frontend_domain: str | None = None
    support_email: str | None = None
    industries: tuple[str, ...] = ()


class RequestSignals(BaseModel):
    """Tenant-identifying signals exposed by the request layer."""

    host: str | None = None
    brand_header: str | None = None
    session_brand: str | None = None
