"""Job queues carrying serialized envelopes."""

from __future__ import annotations

from collections import deque
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from sqlalchemy import update
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from brandcontext.models.database import QueuedJob, _utc_now
from brandcontext.types import JobStatus
from brandcontext.worker.envelope import JobEnvelope

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = structlog.get_logger(__name__)

_STALE_JOB_TIMEOUT = timedelta(minutes=30)


class JobQueue(Protocol):
    async def push(self, envelope: JobEnvelope) -> None: ...

    async def pop(self) -> JobEnvelope | None: ...

    async def complete(self, envelope: JobEnvelope) -> None: ...

    async def release(self, envelope: JobEnvelope) -> None: ...

    async def fail(self, envelope: JobEnvelope, error: str) -> None: ...

    async def recover_stale_jobs(self) -> int: ...


async def dispatch(
    queue: JobQueue, job_type: str, payload: dict[str, Any] | None = None
) -> JobEnvelope:
    """Capture the current brand into an envelope and enqueue it."""
    envelope = JobEnvelope.capture(job_type, payload)
    await queue.push(envelope)
    logger.info(
        "job_dispatched",
        job_id=envelope.id,
        job_type=job_type,
        captured_brand=envelope.captured_brand,
    )
    return envelope


class InMemoryJobQueue:
    """FIFO queue for dev and tests. Envelopes are stored serialized."""

    def __init__(self) -> None:
        self._pending: deque[str] = deque()
        self.completed: list[JobEnvelope] = []
        self.failed: list[tuple[JobEnvelope, str]] = []

    def __len__(self) -> int:
        return len(self._pending)

    async def push(self, envelope: JobEnvelope) -> None:
        self._pending.append(envelope.to_json())

    async def pop(self) -> JobEnvelope | None:
        if not self._pending:
            return None
        return JobEnvelope.from_json(self._pending.popleft())

    async def complete(self, envelope: JobEnvelope) -> None:
        self.completed.append(envelope)

    async def release(self, envelope: JobEnvelope) -> None:
        self._pending.append(envelope.to_json())

    async def fail(self, envelope: JobEnvelope, error: str) -> None:
        self.failed.append((envelope, error))

    async def recover_stale_jobs(self) -> int:
        """Nothing is ever left running in memory."""
        return 0


class DatabaseJobQueue:
    """Database-backed queue on a fixed (non-brand) connection.

    Claims use SELECT ... FOR UPDATE SKIP LOCKED where the dialect supports it.
    """

    def __init__(self, engine: AsyncEngine, stale_after: timedelta = _STALE_JOB_TIMEOUT) -> None:
        self._engine = engine
        self._stale_after = stale_after

    async def push(self, envelope: JobEnvelope) -> None:
        async with AsyncSession(self._engine) as session:
            session.add(
                QueuedJob(
                    id=envelope.id,
                    job_type=envelope.job_type,
                    brand=envelope.captured_brand,
                    envelope_json=envelope.to_json(),
                    attempts=envelope.attempts,
                )
            )
            await session.commit()
        logger.debug("job_enqueued", job_id=envelope.id, brand=envelope.captured_brand)

    async def pop(self) -> JobEnvelope | None:
        async with AsyncSession(self._engine) as session:
            statement = (
                select(QueuedJob)
                .where(col(QueuedJob.status) == JobStatus.PENDING)
                .order_by(col(QueuedJob.created_at).asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            result = await session.execute(statement)
            row = result.scalars().first()
            if row is None:
                return None
            row.status = JobStatus.RUNNING
            row.started_at = _utc_now()
            raw = row.envelope_json
            session.add(row)
            await session.commit()
        envelope = JobEnvelope.from_json(raw)
        logger.info("job_claimed", job_id=envelope.id)
        return envelope

    async def complete(self, envelope: JobEnvelope) -> None:
        await self._finish(envelope, JobStatus.COMPLETED, None)

    async def fail(self, envelope: JobEnvelope, error: str) -> None:
        await self._finish(envelope, JobStatus.FAILED, error)

    async def release(self, envelope: JobEnvelope) -> None:
        """Put a job back as pending with its updated envelope."""
        async with AsyncSession(self._engine) as session:
            row = await session.get(QueuedJob, envelope.id)
            if row is None:
                return
            row.status = JobStatus.PENDING
            row.envelope_json = envelope.to_json()
            row.attempts = envelope.attempts
            row.started_at = None
            session.add(row)
            await session.commit()

    async def _finish(self, envelope: JobEnvelope, status: JobStatus, error: str | None) -> None:
        async with AsyncSession(self._engine) as session:
            row = await session.get(QueuedJob, envelope.id)
            if row is None:
                return
            row.status = status
            row.error_message = error
            row.finished_at = _utc_now()
            session.add(row)
            await session.commit()
        logger.info("job_finished", job_id=envelope.id, status=status.value)

    async def recover_stale_jobs(self) -> int:
        """Reset jobs stuck in 'running' beyond the timeout back to pending."""
        statement = (
            update(QueuedJob)
            .where(
                col(QueuedJob.status) == JobStatus.RUNNING,
                col(QueuedJob.started_at) < _utc_now() - self._stale_after,
            )
            .values(status=JobStatus.PENDING, started_at=None)
        )
        async with self._engine.begin() as conn:
            result = await conn.execute(statement)
        count = result.rowcount or 0
        if count:
            logger.warning("stale_jobs_recovered", count=count)
        return count
