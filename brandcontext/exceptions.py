"""Exception hierarchy for brandcontext."""

from __future__ import annotations

from typing import Any


class BrandContextError(Exception):
    """Base exception for all brandcontext errors."""


class ConfigError(BrandContextError):
    """Raised when configuration is invalid. Fatal: the process must not serve."""


class StorageError(BrandContextError):
    """Raised when a storage switch or storage operation fails."""


class QueueError(BrandContextError):
    """Raised when a job envelope cannot be decoded or dispatched."""


class DomainError(BrandContextError):
    """A business invariant rejected the operation.

    Carries a machine-readable ``kind`` and the fields needed to render the
    error without re-querying storage.
    """

    kind = "domain_error"
    status_code = 400

    def fields(self) -> dict[str, Any]:
        return {}

    def to_payload(self) -> dict[str, Any]:
        return {"success": False, "error": self.kind, "message": str(self), **self.fields()}


class ImmutableRecordViolation(DomainError):
    """Raised when a write touches fields locked on an immutable record."""

    kind = "immutable_record"
    status_code = 409

    def __init__(self, record_id: str | int, locked_fields: list[str]) -> None:
        self.record_id = record_id
        self.locked_fields = list(locked_fields)
        super().__init__(
            "Cannot modify completed record. Locked fields: " + ", ".join(self.locked_fields)
        )

    def fields(self) -> dict[str, Any]:
        return {"record_id": self.record_id, "locked_fields": self.locked_fields}


class ScenarioBankIncomplete(DomainError):
    """Raised when fewer than the required active scenarios exist for a class."""

    kind = "scenario_bank_incomplete"
    status_code = 422

    def __init__(self, command_class: str, required: int, found: int) -> None:
        self.command_class = command_class
        self.required = required
        self.found = found
        super().__init__(
            f"Only {found}/{required} active scenarios for class {command_class}."
        )

    def fields(self) -> dict[str, Any]:
        return {
            "command_class": self.command_class,
            "required": self.required,
            "found": self.found,
        }
