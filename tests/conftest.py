"""Shared test fixtures."""

from __future__ import annotations

import pytest
import structlog
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from brandcontext.config.settings import Settings
from brandcontext.storage.cache import CacheManager, MemoryCacheBackend
from brandcontext.storage.database import ConnectionRegistry
from brandcontext.tenancy import context as tenant_context
from brandcontext.tenancy.registry import BrandRegistry
from brandcontext.tenancy.switcher import StorageSwitcher
from brandcontext.web.app import create_app
from brandcontext.web.turnstile import TurnstileVerifier
from brandcontext.worker.queue import InMemoryJobQueue

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def _clean_ambient_state():
    """Start every test with no published brand and no bound log context."""
    token = tenant_context._current_brand.set(None)
    structlog.contextvars.clear_contextvars()
    yield
    tenant_context.reset_current_brand(token)
    structlog.contextvars.clear_contextvars()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        database_connections={"mysql": MEMORY_URL, "mysql_talentqx": MEMORY_URL},
        queue_connection="mysql",
    )


@pytest.fixture()
def registry(settings: Settings) -> BrandRegistry:
    return BrandRegistry.from_settings(settings)


@pytest.fixture()
async def brand_engines():
    """One in-memory SQLite database per brand connection, schema created."""
    engines = {
        "mysql": create_async_engine(MEMORY_URL, poolclass=StaticPool),
        "mysql_talentqx": create_async_engine(MEMORY_URL, poolclass=StaticPool),
    }
    for engine in engines.values():
        async with engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
    yield engines
    for engine in engines.values():
        await engine.dispose()


@pytest.fixture()
def cache_backend() -> MemoryCacheBackend:
    return MemoryCacheBackend()


@pytest.fixture()
def switcher(
    settings: Settings,
    registry: BrandRegistry,
    brand_engines,
    cache_backend: MemoryCacheBackend,
) -> StorageSwitcher:
    connections = ConnectionRegistry(
        settings.database_connections,
        registry.default.connection,
        engines=brand_engines,
    )
    return StorageSwitcher(
        registry, connections, CacheManager(cache_backend, registry.default.cache_prefix)
    )


@pytest.fixture()
def job_queue() -> InMemoryJobQueue:
    return InMemoryJobQueue()


@pytest.fixture()
def app(settings: Settings, switcher: StorageSwitcher, job_queue: InMemoryJobQueue):
    """App wired to the in-memory brand databases, queue and a disabled Turnstile."""
    return create_app(
        settings,
        switcher=switcher,
        job_queue=job_queue,
        turnstile=TurnstileVerifier(enabled=False, secret_key=None, verify_url="http://unused"),
    )


@pytest.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
