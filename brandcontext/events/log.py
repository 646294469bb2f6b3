"""Brand-tagged operational event log.

Events go to the structlog stream and to an :class:`EventSink`. The log does
no tenant filtering of its own; dashboards that need one brand filter on
``meta["brand"]``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from brandcontext.models.database import SystemEvent
from brandcontext.types import BrandKey, Severity

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_MARITIME_INDUSTRY = "maritime"

_LOG_METHOD = {
    Severity.INFO: "info",
    Severity.WARN: "warning",
    Severity.CRITICAL: "critical",
}


def infer_brand(meta: dict[str, Any]) -> str:
    """Brand for an event that did not name one: maritime -> octopus, else talentqx."""
    if meta.get("industry_code") == _MARITIME_INDUSTRY:
        return BrandKey.OCTOPUS.value
    return BrandKey.TALENTQX.value


class EventSink(Protocol):
    async def write(self, event: SystemEvent) -> SystemEvent: ...

    async def recent(
        self, limit: int, type: str | None = None, severity: str | None = None
    ) -> list[SystemEvent]: ...


class DatabaseEventSink:
    """Append-only sink on the system_events table."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def write(self, event: SystemEvent) -> SystemEvent:
        async with AsyncSession(self._engine) as session:
            session.add(event)
            await session.commit()
            await session.refresh(event)
        return event

    async def recent(
        self, limit: int, type: str | None = None, severity: str | None = None
    ) -> list[SystemEvent]:
        statement = select(SystemEvent)
        if type:
            statement = statement.where(col(SystemEvent.type) == type)
        if severity:
            statement = statement.where(col(SystemEvent.severity) == severity)
        statement = statement.order_by(
            col(SystemEvent.created_at).desc(), col(SystemEvent.id).desc()
        ).limit(limit)
        async with AsyncSession(self._engine) as session:
            result = await session.execute(statement)
            return list(result.scalars().all())


class InMemoryEventSink:
    """In-memory sink for dev and tests."""

    def __init__(self) -> None:
        self.events: list[SystemEvent] = []

    async def write(self, event: SystemEvent) -> SystemEvent:
        event.id = len(self.events) + 1
        self.events.append(event)
        return event

    async def recent(
        self, limit: int, type: str | None = None, severity: str | None = None
    ) -> list[SystemEvent]:
        matches = [
            e
            for e in reversed(self.events)
            if (type is None or e.type == type) and (severity is None or e.severity == severity)
        ]
        return matches[:limit]


class EventLog:
    """Writes SystemEvents through an injected sink."""

    def __init__(self, sink: EventSink) -> None:
        self._sink = sink

    async def log(
        self,
        type: str,
        severity: str,
        source: str,
        message: str,
        meta: dict[str, Any] | None = None,
    ) -> SystemEvent:
        try:
            level = Severity(severity)
        except ValueError as exc:
            msg = f"Unknown event severity: {severity!r}"
            raise ValueError(msg) from exc

        tagged = dict(meta or {})
        if "brand" not in tagged:
            tagged["brand"] = infer_brand(tagged)

        getattr(logger, _LOG_METHOD[level])(
            "system_event",
            event_type=type,
            severity=level.value,
            source=source,
            message=message,
            meta=tagged,
        )

        event = SystemEvent(
            type=type,
            severity=level.value,
            source=source,
            message=message,
            meta_json=json.dumps(tagged, default=str),
        )
        return await self._sink.write(event)

    async def alert(
        self, type: str, source: str, message: str, meta: dict[str, Any] | None = None
    ) -> SystemEvent:
        return await self.log(type, Severity.CRITICAL, source, message, meta)

    async def warn(
        self, type: str, source: str, message: str, meta: dict[str, Any] | None = None
    ) -> SystemEvent:
        return await self.log(type, Severity.WARN, source, message, meta)

    async def info(
        self, type: str, source: str, message: str, meta: dict[str, Any] | None = None
    ) -> SystemEvent:
        return await self.log(type, Severity.INFO, source, message, meta)

    async def get_recent(
        self, limit: int = 25, type: str | None = None, severity: str | None = None
    ) -> list[SystemEvent]:
        """Most recent events, newest first, optionally filtered."""
        if limit <= 0:
            return []
        return await self._sink.recent(limit, type=type, severity=severity)
