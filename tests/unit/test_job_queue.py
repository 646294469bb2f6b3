"""Unit tests for the in-memory and database job queues."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import pytest
from sqlmodel.ext.asyncio.session import AsyncSession

from brandcontext.models.database import QueuedJob
from brandcontext.tenancy.context import set_current_brand
from brandcontext.worker.envelope import JobEnvelope
from brandcontext.worker.queue import DatabaseJobQueue, InMemoryJobQueue, dispatch

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.mark.unit
class TestDispatch:
    async def test_dispatch_captures_brand(self) -> None:
        queue = InMemoryJobQueue()
        set_current_brand("talentqx")
        envelope = await dispatch(queue, "analyze_interview", {"interview_id": "i-9"})
        assert envelope.captured_brand == "talentqx"
        popped = await queue.pop()
        assert popped == envelope


@pytest.mark.unit
class TestInMemoryJobQueue:
    async def test_fifo(self) -> None:
        queue = InMemoryJobQueue()
        first = JobEnvelope(job_type="a", captured_brand="octopus")
        second = JobEnvelope(job_type="b", captured_brand="talentqx")
        await queue.push(first)
        await queue.push(second)
        assert len(queue) == 2
        assert (await queue.pop()) == first
        assert (await queue.pop()) == second
        assert await queue.pop() is None

    async def test_release_requeues(self) -> None:
        queue = InMemoryJobQueue()
        envelope = JobEnvelope(job_type="a", captured_brand="octopus")
        await queue.release(envelope.retried())
        popped = await queue.pop()
        assert popped is not None
        assert popped.attempts == 1


@pytest.mark.unit
class TestDatabaseJobQueue:
    async def test_push_pop_complete(self, brand_engines: dict[str, AsyncEngine]) -> None:
        engine = brand_engines["mysql"]
        queue = DatabaseJobQueue(engine)
        envelope = JobEnvelope(job_type="a", captured_brand="talentqx", payload={"x": 1})
        await queue.push(envelope)

        popped = await queue.pop()
        assert popped == envelope
        assert await queue.pop() is None

        await queue.complete(popped)
        async with AsyncSession(engine) as session:
            row = await session.get(QueuedJob, envelope.id)
        assert row is not None
        assert row.status == "completed"
        assert row.brand == "talentqx"
        assert row.finished_at is not None

    async def test_release_and_fail(self, brand_engines: dict[str, AsyncEngine]) -> None:
        engine = brand_engines["mysql"]
        queue = DatabaseJobQueue(engine)
        envelope = JobEnvelope(job_type="a", captured_brand="octopus")
        await queue.push(envelope)

        claimed = await queue.pop()
        assert claimed is not None
        await queue.release(claimed.retried())

        again = await queue.pop()
        assert again is not None
        assert again.attempts == 1
        assert again.captured_brand == "octopus"

        await queue.fail(again, "boom")
        async with AsyncSession(engine) as session:
            row = await session.get(QueuedJob, envelope.id)
        assert row is not None
        assert row.status == "failed"
        assert row.error_message == "boom"

    async def test_recover_stale_jobs(self, brand_engines: dict[str, AsyncEngine]) -> None:
        engine = brand_engines["mysql"]
        queue = DatabaseJobQueue(engine, stale_after=timedelta(minutes=30))
        envelope = JobEnvelope(job_type="a", captured_brand="talentqx")
        await queue.push(envelope)
        assert await queue.pop() is not None

        # Freshly claimed jobs are left alone.
        assert await queue.recover_stale_jobs() == 0
        assert await queue.pop() is None

        async with AsyncSession(engine) as session:
            row = await session.get(QueuedJob, envelope.id)
            assert row is not None
            row.started_at = datetime(2000, 1, 1)
            session.add(row)
            await session.commit()

        assert await queue.recover_stale_jobs() == 1
        recovered = await queue.pop()
        assert recovered is not None
        assert recovered.id == envelope.id
        assert recovered.captured_brand == "talentqx"

    async def test_in_memory_has_nothing_stale(self) -> None:
        assert await InMemoryJobQueue().recover_stale_jobs() == 0
