"""Job execution: restore the captured brand, then run the handler."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog

from brandcontext.exceptions import ConfigError, QueueError, StorageError

if TYPE_CHECKING:
    from brandcontext.tenancy.switcher import StorageContext, StorageSwitcher
    from brandcontext.worker.envelope import JobEnvelope
    from brandcontext.worker.queue import JobQueue

logger = structlog.get_logger(__name__)

JobHandler = Callable[["StorageContext", dict[str, Any]], Awaitable[None]]


class JobRegistry:
    """Maps job types to async handlers taking (StorageContext, payload)."""

    def __init__(self) -> None:
        self._handlers: dict[str, JobHandler] = {}

    def register(self, job_type: str) -> Callable[[JobHandler], JobHandler]:
        def decorator(func: JobHandler) -> JobHandler:
            if job_type in self._handlers:
                msg = f"Job type already registered: {job_type}"
                raise ValueError(msg)
            self._handlers[job_type] = func
            return func

        return decorator

    def get(self, job_type: str) -> JobHandler:
        try:
            return self._handlers[job_type]
        except KeyError:
            msg = f"Unknown job type: {job_type}"
            raise QueueError(msg) from None

    def types(self) -> list[str]:
        return list(self._handlers)


class TenantJobRunner:
    """Runs envelopes with their captured brand restored first.

    Handlers only ever receive the StorageContext produced by the switch, so
    they cannot reach storage before restoration.
    """

    def __init__(self, switcher: StorageSwitcher, registry: JobRegistry) -> None:
        self._switcher = switcher
        self._registry = registry

    async def execute(self, envelope: JobEnvelope) -> None:
        ctx = self._switcher.apply_brand(envelope.captured_brand)
        structlog.contextvars.bind_contextvars(job_id=envelope.id)
        logger.info(
            "job_restored",
            job_id=envelope.id,
            job_type=envelope.job_type,
            brand=ctx.brand,
            attempt=envelope.attempts + 1,
        )
        handler = self._registry.get(envelope.job_type)
        await handler(ctx, envelope.payload)


class JobWorker:
    """Polls the job queue and executes envelopes one at a time.

    Handles SIGTERM/SIGINT for graceful shutdown.
    """

    def __init__(
        self,
        queue: JobQueue,
        runner: TenantJobRunner,
        poll_interval: float = 2.0,
        max_attempts: int = 3,
    ) -> None:
        self._queue = queue
        self._runner = runner
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._running = True

    async def run(self) -> None:
        """Main polling loop."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._shutdown)

        logger.info("worker_started", poll_interval=self._poll_interval)

        while self._running:
            try:
                await self._queue.recover_stale_jobs()

                if not await self.run_once():
                    await asyncio.sleep(self._poll_interval)
            except asyncio.CancelledError:
                break
            except (ConfigError, StorageError):
                logger.exception("worker_storage_fatal")
                raise
            except Exception:
                logger.exception("worker_poll_error")
                await asyncio.sleep(self._poll_interval)

        logger.info("worker_stopped")

    async def run_once(self) -> bool:
        """Claim and execute one job. Returns False when the queue was empty."""
        envelope = await self._queue.pop()
        if envelope is None:
            return False
        await self._execute(envelope)
        return True

    async def _execute(self, envelope: JobEnvelope) -> None:
        try:
            await self._runner.execute(envelope)
        except (ConfigError, StorageError):
            # Not an attempt: back to pending as-is.
            await self._queue.release(envelope)
            logger.error("job_released_on_fatal", job_id=envelope.id)
            raise
        except QueueError as exc:
            logger.error("job_rejected", job_id=envelope.id, error=str(exc))
            await self._queue.fail(envelope, str(exc))
            return
        except Exception as exc:
            retried = envelope.retried()
            if retried.attempts < self._max_attempts:
                logger.warning(
                    "job_retry_scheduled",
                    job_id=envelope.id,
                    attempts=retried.attempts,
                    error=str(exc),
                )
                await self._queue.release(retried)
            else:
                logger.error("job_failed", job_id=envelope.id, error=str(exc))
                await self._queue.fail(retried, str(exc))
            return
        finally:
            structlog.contextvars.unbind_contextvars("job_id")

        await self._queue.complete(envelope)
        logger.info("job_completed", job_id=envelope.id)

    def _shutdown(self) -> None:
        """Signal handler for graceful shutdown."""
        logger.info("worker_shutdown_requested")
        self._running = False
