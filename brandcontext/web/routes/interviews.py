"""Interview API routes: consumers of the request's storage context."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from brandcontext.guards.scenarios import ScenarioBankGuard
from brandcontext.storage.repositories.interviews import InterviewRepository
from brandcontext.types import CommandClass, InterviewStatus
from brandcontext.web.dependencies import (
    get_app_settings,
    get_event_log,
    get_job_queue,
    get_storage_context,
    get_switcher,
    get_turnstile,
)
from brandcontext.web.turnstile import ensure_turnstile
from brandcontext.worker.handlers import ANALYZE_INTERVIEW
from brandcontext.worker.queue import dispatch

if TYPE_CHECKING:
    from brandcontext.config.settings import Settings
    from brandcontext.events.log import EventLog
    from brandcontext.models.database import FormInterview
    from brandcontext.tenancy.switcher import StorageContext, StorageSwitcher
    from brandcontext.web.turnstile import TurnstileVerifier
    from brandcontext.worker.queue import JobQueue

router = APIRouter(prefix="/api/interviews", tags=["interviews"])


class StartInterviewRequest(BaseModel):
    industry_code: str | None = None
    position_code: str = "__generic__"
    language: str = "en"
    version: str = "v1"
    meta: dict[str, Any] | None = None
    turnstile_token: str | None = None


class UpdateInterviewRequest(BaseModel):
    status: InterviewStatus | None = None
    language: str | None = None
    position_code: str | None = None
    industry_code: str | None = None
    decision: str | None = None
    final_score: float | None = None
    admin_notes: str | None = None
    meta: dict[str, Any] | None = None


class CommandClassRequest(BaseModel):
    command_class: CommandClass


class AnalyzeRequest(BaseModel):
    force_reanalyze: bool = False
    provider: str | None = None


def _serialize(interview: FormInterview) -> dict[str, Any]:
    data = interview.model_dump(exclude={"meta_json"})
    data["meta"] = json.loads(interview.meta_json) if interview.meta_json else None
    for key in ("completed_at", "created_at", "updated_at"):
        if data[key] is not None:
            data[key] = data[key].isoformat()
    return data


async def _get_or_404(repo: InterviewRepository, interview_id: str) -> FormInterview:
    interview = await repo.get(interview_id)
    if interview is None:
        raise HTTPException(status_code=404, detail="Interview not found")
    return interview


@router.post("", status_code=201)
async def start_interview(
    body: StartInterviewRequest,
    request: Request,
    ctx: StorageContext = Depends(get_storage_context),
    turnstile: TurnstileVerifier = Depends(get_turnstile),
    switcher: StorageSwitcher = Depends(get_switcher),
) -> dict[str, Any]:
    """Start an interview. Brand comes from the industry, else the request's brand."""
    client_ip = request.client.host if request.client else None
    await ensure_turnstile(turnstile, body.turnstile_token, client_ip)

    platform_code = switcher.registry.code_from_industry(body.industry_code) or ctx.brand
    platform = switcher.registry.descriptor_for(platform_code)

    interview = await InterviewRepository(ctx).create(
        industry_code=body.industry_code,
        position_code=body.position_code,
        language=body.language,
        version=body.version,
        platform_code=platform_code,
        brand_domain=platform.domain,
        meta_json=json.dumps(body.meta) if body.meta else None,
    )
    return _serialize(interview)


@router.get("/{interview_id}")
async def get_interview(
    interview_id: str,
    ctx: StorageContext = Depends(get_storage_context),
) -> dict[str, Any]:
    interview = await _get_or_404(InterviewRepository(ctx), interview_id)
    return _serialize(interview)


@router.patch("/{interview_id}")
async def update_interview(
    interview_id: str,
    body: UpdateInterviewRequest,
    ctx: StorageContext = Depends(get_storage_context),
) -> dict[str, Any]:
    """Update an interview. Locked fields of completed interviews answer 409."""
    changes = body.model_dump(exclude_unset=True)
    if "meta" in changes:
        meta = changes.pop("meta")
        changes["meta_json"] = json.dumps(meta) if meta is not None else None

    interview = await InterviewRepository(ctx).update(interview_id, changes)
    if interview is None:
        raise HTTPException(status_code=404, detail="Interview not found")
    return _serialize(interview)


@router.post("/{interview_id}/command-class")
async def override_command_class(
    interview_id: str,
    body: CommandClassRequest,
    ctx: StorageContext = Depends(get_storage_context),
    settings: Settings = Depends(get_app_settings),
    events: EventLog = Depends(get_event_log),
) -> dict[str, Any]:
    """Override the detected command class once its scenario bank is complete."""
    repo = InterviewRepository(ctx)
    interview = await _get_or_404(repo, interview_id)

    new_class = body.command_class.value
    guard = ScenarioBankGuard(ctx, required=settings.scenario_bank_required)
    await guard.ensure_ready(new_class)

    old_class = interview.command_class_detected
    updated = await repo.update(interview_id, {"command_class_detected": new_class})
    await events.info(
        "command_class_overridden",
        "InterviewController",
        f"Interview {interview_id} command class {old_class} -> {new_class}",
        {
            "interview_id": interview_id,
            "old_class": old_class,
            "new_class": new_class,
            "industry_code": interview.industry_code,
        },
    )
    return _serialize(updated) if updated else _serialize(interview)


@router.post("/{interview_id}/analyze", status_code=202)
async def analyze_interview(
    interview_id: str,
    body: AnalyzeRequest | None = None,
    ctx: StorageContext = Depends(get_storage_context),
    queue: JobQueue = Depends(get_job_queue),
) -> dict[str, Any]:
    """Queue an analysis job carrying this request's brand."""
    await _get_or_404(InterviewRepository(ctx), interview_id)
    options = body or AnalyzeRequest()
    envelope = await dispatch(
        queue,
        ANALYZE_INTERVIEW,
        {
            "interview_id": interview_id,
            "force_reanalyze": options.force_reanalyze,
            "provider": options.provider,
        },
    )
    return {"job_id": envelope.id, "brand": envelope.captured_brand, "status": "queued"}
