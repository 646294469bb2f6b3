"""Health check endpoint logic."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text

if TYPE_CHECKING:
    from brandcontext.tenancy.switcher import StorageContext, StorageSwitcher

logger = structlog.get_logger(__name__)


async def check_health(ctx: StorageContext, switcher: StorageSwitcher) -> dict[str, object]:
    """Return health status with a probe of the active brand connection."""
    result: dict[str, object] = {
        "status": "healthy",
        "version": "0.1.0",
        "brand": ctx.brand,
        "brands": switcher.registry.keys(),
        "connection": ctx.connection,
        "database": "connected",
    }

    try:
        async with ctx.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as exc:
        logger.warning("health_check_db_failed", connection=ctx.connection, error=str(exc))
        result["database"] = "unavailable"
        result["status"] = "degraded"

    return result
