"""Immutability guard for completed interviews."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from brandcontext.exceptions import ImmutableRecordViolation
from brandcontext.models.database import FormInterview
from brandcontext.types import InterviewStatus

# Fields frozen once an interview reaches the completed state.
LOCKED_FIELDS = frozenset(
    {
        "status",
        "version",
        "language",
        "position_code",
        "industry_code",
        "platform_code",
        "command_class_detected",
        "meta_json",
        "decision",
        "final_score",
        "completed_at",
    }
)

# Admins may still edit these after completion.
ADMIN_MUTABLE_FIELDS = frozenset({"admin_notes"})


def locked_changes(record: FormInterview, changes: Mapping[str, Any]) -> list[str]:
    """Return the locked fields a write would actually change, in write order.

    Nothing is locked unless the stored record is already completed.
    """
    if record.status != InterviewStatus.COMPLETED:
        return []
    return [
        name
        for name, value in changes.items()
        if name in LOCKED_FIELDS and getattr(record, name) != value
    ]


def ensure_mutable(record: FormInterview, changes: Mapping[str, Any]) -> None:
    locked = locked_changes(record, changes)
    if locked:
        raise ImmutableRecordViolation(record.id, locked)
