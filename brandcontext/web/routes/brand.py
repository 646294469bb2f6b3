"""Active brand API routes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends

from brandcontext.web.dependencies import get_storage_context

if TYPE_CHECKING:
    from brandcontext.tenancy.switcher import StorageContext

router = APIRouter(prefix="/api/brand", tags=["brand"])


@router.get("")
async def current_brand(ctx: StorageContext = Depends(get_storage_context)) -> dict[str, Any]:
    """Public metadata of the brand this request resolved to."""
    descriptor = ctx.descriptor
    return {
        "key": descriptor.key,
        "name": descriptor.display_name,
        "logo_url": descriptor.logo_url,
        "domain": descriptor.domain,
        "frontend_domain": descriptor.frontend_domain,
        "support_email": descriptor.support_email,
    }
