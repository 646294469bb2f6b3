"""FastAPI dependency injection: per-request storage context and shared services."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, Request

from brandcontext.events.log import DatabaseEventSink, EventLog

if TYPE_CHECKING:
    from brandcontext.config.settings import Settings
    from brandcontext.tenancy.switcher import StorageContext, StorageSwitcher
    from brandcontext.web.turnstile import TurnstileVerifier
    from brandcontext.worker.queue import JobQueue


def get_storage_context(request: Request) -> StorageContext:
    """The StorageContext TenantMiddleware switched to for this request."""
    ctx: StorageContext = request.state.storage
    return ctx


def get_app_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_switcher(request: Request) -> StorageSwitcher:
    switcher: StorageSwitcher = request.app.state.switcher
    return switcher


def get_job_queue(request: Request) -> JobQueue:
    queue: JobQueue = request.app.state.job_queue
    return queue


def get_turnstile(request: Request) -> TurnstileVerifier:
    verifier: TurnstileVerifier = request.app.state.turnstile
    return verifier


def get_event_log(ctx: StorageContext = Depends(get_storage_context)) -> EventLog:
    return EventLog(DatabaseEventSink(ctx.engine))
