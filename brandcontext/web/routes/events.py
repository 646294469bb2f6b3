"""System event query API routes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, Query

from brandcontext.types import Severity
from brandcontext.web.dependencies import get_event_log

if TYPE_CHECKING:
    from brandcontext.events.log import EventLog

router = APIRouter(prefix="/api/system/events", tags=["events"])


@router.get("")
async def recent_events(
    events: EventLog = Depends(get_event_log),
    limit: int = Query(default=25, ge=1, le=100),
    type: str | None = Query(default=None, max_length=100),
    severity: Severity | None = None,
) -> list[dict[str, Any]]:
    """Most recent events, newest first. Not filtered by brand."""
    found = await events.get_recent(limit, type=type, severity=severity)
    return [event.to_dict() for event in found]
