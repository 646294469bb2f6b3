"""Built-in job handlers.

Each handler receives the StorageContext restored from its envelope and
touches storage only through it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from brandcontext.events.log import DatabaseEventSink, EventLog
from brandcontext.guards.scenarios import ScenarioBankGuard
from brandcontext.models.database import _utc_now
from brandcontext.storage.repositories.interviews import InterviewRepository
from brandcontext.types import CommandClass
from brandcontext.worker.runner import JobRegistry

if TYPE_CHECKING:
    from brandcontext.tenancy.switcher import StorageContext

logger = structlog.get_logger(__name__)

ANALYZE_INTERVIEW = "analyze_interview"
WARM_SCENARIO_CACHE = "warm_scenario_cache"

SCENARIO_COUNTS_CACHE_KEY = "scenario_bank:counts"


def analysis_cache_key(interview_id: str) -> str:
    return f"interview:{interview_id}:analysis"


registry = JobRegistry()


@registry.register(ANALYZE_INTERVIEW)
async def analyze_interview(ctx: StorageContext, payload: dict[str, Any]) -> None:
    """Mark an interview analysis as pending and record the request."""
    interview_id = str(payload["interview_id"])
    events = EventLog(DatabaseEventSink(ctx.engine))

    interview = await InterviewRepository(ctx).get(interview_id)
    if interview is None:
        await events.warn(
            "interview_analysis_missing",
            "AnalyzeInterviewJob",
            f"Interview {interview_id} not found for analysis",
            {"interview_id": interview_id, "brand": ctx.brand},
        )
        return

    await ctx.cache.put(
        analysis_cache_key(interview_id),
        {
            "status": "pending",
            "provider": payload.get("provider"),
            "force_reanalyze": bool(payload.get("force_reanalyze", False)),
            "requested_at": _utc_now().isoformat(),
        },
    )
    await events.info(
        "interview_analysis_queued",
        "AnalyzeInterviewJob",
        f"Analysis queued for interview {interview_id}",
        {
            "interview_id": interview_id,
            "industry_code": interview.industry_code,
            "brand": ctx.brand,
        },
    )


@registry.register(WARM_SCENARIO_CACHE)
async def warm_scenario_cache(ctx: StorageContext, payload: dict[str, Any]) -> None:
    """Cache active scenario counts per command class for this brand."""
    guard = ScenarioBankGuard(ctx)
    counts = {cls.value: await guard.count_active(cls.value) for cls in CommandClass}
    await ctx.cache.put(SCENARIO_COUNTS_CACHE_KEY, counts, ttl=payload.get("ttl"))
    logger.info("scenario_cache_warmed", brand=ctx.brand, classes=len(counts))
