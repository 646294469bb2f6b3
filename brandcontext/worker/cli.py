"""CLI entry point for the job worker."""

from __future__ import annotations

import asyncio

import structlog

from brandcontext.config.logging import setup_logging
from brandcontext.config.settings import get_settings
from brandcontext.tenancy.switcher import get_switcher
from brandcontext.worker.handlers import registry
from brandcontext.worker.queue import DatabaseJobQueue
from brandcontext.worker.runner import JobWorker, TenantJobRunner

logger = structlog.get_logger(__name__)


def main() -> None:
    """Start the job worker. Refuses to start on a broken brand table."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=True)
    switcher = get_switcher()
    queue = DatabaseJobQueue(switcher.connections.engine(settings.queue_connection))
    worker = JobWorker(
        queue,
        TenantJobRunner(switcher, registry),
        poll_interval=settings.worker_poll_interval,
        max_attempts=settings.worker_max_attempts,
    )
    asyncio.run(worker.run())


if __name__ == "__main__":
    main()
