"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import Depends, FastAPI

from brandcontext.config.logging import setup_logging
from brandcontext.config.settings import get_settings
from brandcontext.web.dependencies import get_storage_context
from brandcontext.web.dependencies import get_switcher as switcher_dependency
from brandcontext.web.errors import register_error_handlers
from brandcontext.web.middleware import RequestIDMiddleware, TenantMiddleware
from brandcontext.web.routes.brand import router as brand_router
from brandcontext.web.routes.events import router as events_router
from brandcontext.web.routes.interviews import router as interviews_router
from brandcontext.web.turnstile import TurnstileVerifier

if TYPE_CHECKING:
    from brandcontext.config.settings import Settings
    from brandcontext.tenancy.switcher import StorageContext, StorageSwitcher
    from brandcontext.worker.queue import JobQueue

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    switcher: StorageSwitcher = app.state.switcher
    if app.state.settings.debug:
        from brandcontext.storage.database import init_db

        for name in switcher.connections.names():
            await init_db(switcher.connections.engine(name))
        logger.info("dev_schema_created", connections=switcher.connections.names())
    yield
    await switcher.cache.close()
    await switcher.connections.dispose_all()


def create_app(
    settings: Settings | None = None,
    *,
    switcher: StorageSwitcher | None = None,
    job_queue: JobQueue | None = None,
    turnstile: TurnstileVerifier | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Builds the storage switcher up front, so a brand table that cannot serve
    the default brand stops startup with ConfigError.
    """
    settings = settings or get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    if switcher is None:
        from brandcontext.tenancy.switcher import build_switcher

        switcher = build_switcher(settings)
    if job_queue is None:
        from brandcontext.worker.queue import DatabaseJobQueue

        job_queue = DatabaseJobQueue(switcher.connections.engine(settings.queue_connection))

    app = FastAPI(
        title="brandcontext",
        description="Multi-brand HR platform backend",
        version="0.1.0",
        lifespan=_lifespan,
    )
    app.state.settings = settings
    app.state.switcher = switcher
    app.state.job_queue = job_queue
    app.state.turnstile = turnstile or TurnstileVerifier.from_settings(settings)

    register_error_handlers(app)

    # Middleware (order matters: last added runs first)
    app.add_middleware(TenantMiddleware, switcher=switcher)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/health")
    async def health_check(
        ctx: StorageContext = Depends(get_storage_context),
        current: StorageSwitcher = Depends(switcher_dependency),
    ) -> dict[str, object]:
        from brandcontext.web.health import check_health

        return await check_health(ctx, current)

    app.include_router(brand_router)
    app.include_router(events_router)
    app.include_router(interviews_router)

    logger.info("app_created", brands=switcher.registry.keys())
    return app
