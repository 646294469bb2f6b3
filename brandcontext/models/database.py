"""SQLModel database table models.

Every brand connection carries the same schema; rows never hold a brand
column because the connection itself is the tenant boundary.
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from typing import Any

from sqlmodel import Field, SQLModel

from brandcontext.types import InterviewStatus, JobStatus


def _utc_now() -> datetime:
    """Return current UTC time as naive datetime for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def _new_uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Interviews and the scenario bank
# ---------------------------------------------------------------------------


class FormInterview(SQLModel, table=True):
    __tablename__ = "form_interviews"

    id: str = Field(default_factory=_new_uuid, primary_key=True)
    status: str = Field(default=InterviewStatus.IN_PROGRESS, index=True)
    version: str = "v1"
    language: str = "en"
    position_code: str = "__generic__"
    industry_code: str | None = Field(default=None, index=True)
    platform_code: str | None = None
    brand_domain: str | None = None
    command_class_detected: str | None = None
    decision: str | None = None  # HIRE | HOLD | REJECT
    final_score: float | None = None
    admin_notes: str | None = None
    meta_json: str | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


class MaritimeScenario(SQLModel, table=True):
    __tablename__ = "maritime_scenarios"

    id: int | None = Field(default=None, primary_key=True)
    scenario_code: str = Field(index=True, unique=True)
    command_class: str = Field(index=True)
    slot: int = Field(default=1)
    is_active: bool = Field(default=False, index=True)
    version: str = "v1"
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)


# ---------------------------------------------------------------------------
# Operational event log
# ---------------------------------------------------------------------------


class SystemEvent(SQLModel, table=True):
    __tablename__ = "system_events"

    id: int | None = Field(default=None, primary_key=True)
    type: str = Field(index=True)
    severity: str = Field(index=True)  # info | warn | critical
    source: str
    message: str
    meta_json: str = "{}"
    created_at: datetime = Field(default_factory=_utc_now, index=True)

    @property
    def meta(self) -> dict[str, Any]:
        loaded: dict[str, Any] = json.loads(self.meta_json or "{}")
        return loaded

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "source": self.source,
            "message": self.message,
            "meta": self.meta,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ---------------------------------------------------------------------------
# Job queue
# ---------------------------------------------------------------------------


class QueuedJob(SQLModel, table=True):
    __tablename__ = "queued_jobs"

    id: str = Field(primary_key=True)
    job_type: str = Field(index=True)
    brand: str = Field(index=True)
    status: str = Field(default=JobStatus.PENDING, index=True)
    envelope_json: str
    attempts: int = Field(default=0)
    error_message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_now, index=True)
