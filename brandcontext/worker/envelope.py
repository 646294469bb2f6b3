"""Job envelope carrying the brand captured at dispatch time."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from brandcontext.exceptions import QueueError
from brandcontext.tenancy.context import current_brand

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class JobEnvelope(BaseModel):
    """Serialized unit of deferred work.

    ``captured_brand`` is the only brand source on the execution side; the
    worker's own tenant context is never consulted.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_type: str
    payload: dict[str, Any] = {}
    captured_brand: str
    attempts: int = 0
    dispatched_at: datetime = Field(default_factory=_utc_now)

    @classmethod
    def capture(cls, job_type: str, payload: dict[str, Any] | None = None) -> JobEnvelope:
        """Wrap a payload with the brand active in the current unit of work."""
        brand = current_brand()
        if brand is None:
            from brandcontext.tenancy.registry import get_brand_registry

            brand = get_brand_registry().default.key
            logger.warning("job_captured_without_brand", job_type=job_type, fallback=brand)
        return cls(job_type=job_type, payload=dict(payload or {}), captured_brand=brand)

    def retried(self) -> JobEnvelope:
        return self.model_copy(update={"attempts": self.attempts + 1})

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, raw: str | bytes) -> JobEnvelope:
        try:
            return cls.model_validate_json(raw)
        except ValidationError as exc:
            msg = f"Malformed job envelope: {exc}"
            raise QueueError(msg) from exc
