"""Interview repository scoped to one storage context."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from sqlmodel.ext.asyncio.session import AsyncSession

from brandcontext.guards.immutability import ensure_mutable
from brandcontext.models.database import FormInterview, _utc_now

if TYPE_CHECKING:
    from brandcontext.tenancy.switcher import StorageContext

logger = structlog.get_logger(__name__)

_WRITABLE_FIELDS = frozenset(FormInterview.model_fields) - {"id", "created_at", "updated_at"}


class InterviewRepository:
    """Reads and writes form interviews on the context's brand connection."""

    def __init__(self, ctx: StorageContext) -> None:
        self._ctx = ctx

    async def create(self, **fields: Any) -> FormInterview:
        interview = FormInterview(**fields)
        async with AsyncSession(self._ctx.engine) as session:
            session.add(interview)
            await session.commit()
            await session.refresh(interview)
        logger.info("interview_created", interview_id=interview.id)
        return interview

    async def get(self, interview_id: str) -> FormInterview | None:
        async with AsyncSession(self._ctx.engine) as session:
            return await session.get(FormInterview, interview_id)

    async def update(self, interview_id: str, changes: dict[str, Any]) -> FormInterview | None:
        """Apply changes, rejecting writes to locked fields of completed interviews."""
        unknown = set(changes) - _WRITABLE_FIELDS
        if unknown:
            msg = f"Unknown interview fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        async with AsyncSession(self._ctx.engine) as session:
            interview = await session.get(FormInterview, interview_id)
            if interview is None:
                return None
            ensure_mutable(interview, changes)
            for name, value in changes.items():
                setattr(interview, name, value)
            interview.updated_at = _utc_now()
            session.add(interview)
            await session.commit()
            await session.refresh(interview)
        logger.info("interview_updated", interview_id=interview_id, fields=sorted(changes))
        return interview
