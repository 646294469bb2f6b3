"""Async database engines, one per named connection."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from brandcontext.exceptions import StorageError

logger = structlog.get_logger(__name__)


class ConnectionRegistry:
    """Process-wide registry of database connections.

    Engines are created lazily and cached per connection name. ``default`` is
    the connection the last brand switch pointed at.
    """

    def __init__(
        self,
        urls: Mapping[str, str],
        default: str,
        *,
        echo: bool = False,
        engines: Mapping[str, AsyncEngine] | None = None,
    ) -> None:
        self._urls = dict(urls)
        self._echo = echo
        self._engines: dict[str, AsyncEngine] = dict(engines or {})
        for name, engine in self._engines.items():
            self._urls.setdefault(name, engine.url.render_as_string(hide_password=False))
        self._default = ""
        self.set_default(default)

    @property
    def default(self) -> str:
        return self._default

    def names(self) -> list[str]:
        return list(self._urls)

    def set_default(self, name: str) -> None:
        if name not in self._urls:
            msg = f"Unknown database connection: {name!r}"
            raise StorageError(msg)
        self._default = name

    def engine(self, name: str | None = None) -> AsyncEngine:
        """Return the engine for a connection (the default when name is None)."""
        name = name or self._default
        if name not in self._urls:
            msg = f"Unknown database connection: {name!r}"
            raise StorageError(msg)
        engine = self._engines.get(name)
        if engine is None:
            engine = create_async_engine(self._urls[name], **self._engine_options(self._urls[name]))
            self._engines[name] = engine
            logger.debug("engine_created", connection=name)
        return engine

    def _engine_options(self, url: str) -> dict[str, Any]:
        options: dict[str, Any] = {"echo": self._echo, "pool_pre_ping": True}
        if not url.startswith("sqlite"):
            options.update(pool_size=5, max_overflow=10, pool_recycle=3600)
        return options

    async def dispose_all(self) -> None:
        for name, engine in self._engines.items():
            await engine.dispose()
            logger.debug("engine_disposed", connection=name)
        self._engines.clear()


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (for dev/testing only)."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
