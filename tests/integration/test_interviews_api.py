"""End-to-end flows through the interview API, the queue and the worker."""

from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from brandcontext.models.database import MaritimeScenario
from brandcontext.tenancy.context import current_brand, set_current_brand
from brandcontext.tenancy.switcher import StorageSwitcher
from brandcontext.web.app import create_app
from brandcontext.web.turnstile import TurnstileVerifier
from brandcontext.worker.handlers import analysis_cache_key, registry
from brandcontext.worker.queue import InMemoryJobQueue
from brandcontext.worker.runner import JobWorker, TenantJobRunner

OCTOPUS = {"X-Brand-Key": "octopus"}
TALENTQX = {"X-Brand-Key": "talentqx"}


async def _start(client: AsyncClient, headers: dict[str, str], **body: object) -> dict:
    resp = await client.post("/api/interviews", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.integration
class TestInterviewLifecycle:
    async def test_start_interview(self, client: AsyncClient) -> None:
        data = await _start(client, TALENTQX, industry_code="retail", meta={"source": "web"})
        assert data["status"] == "in_progress"
        assert data["platform_code"] == "talentqx"
        assert data["brand_domain"] == "talentqx.com"
        assert data["meta"] == {"source": "web"}

    async def test_maritime_industry_sets_platform(self, client: AsyncClient) -> None:
        data = await _start(client, TALENTQX, industry_code="maritime")
        assert data["platform_code"] == "octopus"
        assert data["brand_domain"] == "octopus-ai.net"

    async def test_unclaimed_industry_uses_request_brand(self, client: AsyncClient) -> None:
        data = await _start(client, OCTOPUS, industry_code="retail")
        assert data["platform_code"] == "octopus"
        assert data["brand_domain"] == "octopus-ai.net"

    async def test_interviews_invisible_across_brands(self, client: AsyncClient) -> None:
        data = await _start(client, TALENTQX)
        own = await client.get(f"/api/interviews/{data['id']}", headers=TALENTQX)
        other = await client.get(f"/api/interviews/{data['id']}", headers=OCTOPUS)
        assert own.status_code == 200
        assert other.status_code == 404

    async def test_completed_interview_is_locked(self, client: AsyncClient) -> None:
        data = await _start(client, TALENTQX)
        url = f"/api/interviews/{data['id']}"

        resp = await client.patch(
            url, json={"status": "completed", "decision": "HIRE"}, headers=TALENTQX
        )
        assert resp.status_code == 200

        resp = await client.patch(
            url, json={"decision": "REJECT", "admin_notes": "late"}, headers=TALENTQX
        )
        assert resp.status_code == 409
        assert resp.json() == {
            "success": False,
            "error": "immutable_record",
            "message": "Cannot modify completed record. Locked fields: decision",
            "record_id": data["id"],
            "locked_fields": ["decision"],
        }

        resp = await client.patch(url, json={"admin_notes": "late"}, headers=TALENTQX)
        assert resp.status_code == 200
        assert resp.json()["admin_notes"] == "late"
        assert resp.json()["decision"] == "HIRE"

    async def test_patch_missing_interview(self, client: AsyncClient) -> None:
        resp = await client.patch("/api/interviews/nope", json={"admin_notes": "x"})
        assert resp.status_code == 404


@pytest.mark.integration
class TestCommandClassOverride:
    async def test_requires_complete_scenario_bank(
        self, client: AsyncClient, switcher: StorageSwitcher
    ) -> None:
        data = await _start(client, OCTOPUS, industry_code="maritime")
        url = f"/api/interviews/{data['id']}/command-class"

        ctx = switcher.apply_brand("octopus")
        async with AsyncSession(ctx.engine) as session:
            for slot in range(1, 6):
                session.add(
                    MaritimeScenario(
                        scenario_code=f"TANKER_S{slot:02d}",
                        command_class="TANKER",
                        slot=slot,
                        is_active=True,
                    )
                )
            await session.commit()

        resp = await client.post(url, json={"command_class": "TANKER"}, headers=OCTOPUS)
        assert resp.status_code == 422
        assert resp.json() == {
            "success": False,
            "error": "scenario_bank_incomplete",
            "message": "Only 5/8 active scenarios for class TANKER.",
            "command_class": "TANKER",
            "required": 8,
            "found": 5,
        }

        async with AsyncSession(ctx.engine) as session:
            for slot in range(6, 9):
                session.add(
                    MaritimeScenario(
                        scenario_code=f"TANKER_S{slot:02d}",
                        command_class="TANKER",
                        slot=slot,
                        is_active=True,
                    )
                )
            await session.commit()

        resp = await client.post(url, json={"command_class": "TANKER"}, headers=OCTOPUS)
        assert resp.status_code == 200
        assert resp.json()["command_class_detected"] == "TANKER"

        events = await client.get(
            "/api/system/events", params={"type": "command_class_overridden"}, headers=OCTOPUS
        )
        [event] = events.json()
        assert event["meta"]["brand"] == "octopus"
        assert event["meta"]["new_class"] == "TANKER"

    async def test_unknown_command_class(self, client: AsyncClient) -> None:
        data = await _start(client, OCTOPUS)
        resp = await client.post(
            f"/api/interviews/{data['id']}/command-class",
            json={"command_class": "SUBMARINE"},
            headers=OCTOPUS,
        )
        assert resp.status_code == 422


@pytest.mark.integration
class TestAnalysisJobs:
    async def test_job_runs_under_captured_brand(
        self,
        client: AsyncClient,
        switcher: StorageSwitcher,
        job_queue: InMemoryJobQueue,
    ) -> None:
        data = await _start(client, TALENTQX, industry_code="retail")

        resp = await client.post(
            f"/api/interviews/{data['id']}/analyze", json={"provider": "openai"}, headers=TALENTQX
        )
        assert resp.status_code == 202
        queued = resp.json()
        assert queued["brand"] == "talentqx"
        assert queued["status"] == "queued"
        assert len(job_queue) == 1

        # The worker starts out on the other brand.
        switcher.apply_brand("octopus")
        set_current_brand("octopus")

        worker = JobWorker(job_queue, TenantJobRunner(switcher, registry))
        assert await worker.run_once() is True
        assert [e.id for e in job_queue.completed] == [queued["job_id"]]
        assert current_brand() == "talentqx"

        talentqx = switcher.apply_brand("talentqx")
        cached = await talentqx.cache.get(analysis_cache_key(data["id"]))
        assert cached["status"] == "pending"
        assert cached["provider"] == "openai"

        octopus = switcher.apply_brand("octopus")
        assert await octopus.cache.get(analysis_cache_key(data["id"])) is None

        events = await client.get(
            "/api/system/events", params={"type": "interview_analysis_queued"}, headers=TALENTQX
        )
        assert len(events.json()) == 1
        other = await client.get(
            "/api/system/events", params={"type": "interview_analysis_queued"}, headers=OCTOPUS
        )
        assert other.json() == []

    async def test_analyze_missing_interview(
        self, client: AsyncClient, job_queue: InMemoryJobQueue
    ) -> None:
        resp = await client.post("/api/interviews/missing/analyze", headers=TALENTQX)
        assert resp.status_code == 404
        assert len(job_queue) == 0


@pytest.mark.integration
class TestTurnstileGate:
    async def test_failed_challenge_rejects_start(
        self, settings, switcher: StorageSwitcher, job_queue: InMemoryJobQueue
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False})

        app = create_app(
            settings,
            switcher=switcher,
            job_queue=job_queue,
            turnstile=TurnstileVerifier(
                enabled=True,
                secret_key="secret",
                verify_url="https://turnstile.test/siteverify",
                transport=httpx.MockTransport(handler),
            ),
        )
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post(
                "/api/interviews", json={"turnstile_token": "bad"}, headers=TALENTQX
            )
            missing = await client.post("/api/interviews", json={}, headers=TALENTQX)

        assert resp.status_code == 422
        assert resp.json()["detail"] == {"success": False, "error": "turnstile_failed"}
        assert missing.status_code == 422
