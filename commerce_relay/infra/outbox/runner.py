"""Periodic runner for outbox delivery and retention.

APScheduler triggers the two bounded operations of ``OutboxService`` on
fixed intervals:

- ``process_messages()`` every ``processing_interval_ms``
- ``cleanup_old_messages(days_to_keep_processed_messages)`` every
  ``cleanup_interval_hours``

``coalesce`` and ``max_instances=1`` keep a slow batch from piling up
overlapping runs of the same job. A failing run is logged and the next tick
runs normally.

Usage:
    runner = OutboxProcessingService(outbox_service)
    await runner.start()
    ...
    await runner.stop()
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from commerce_relay.infra.logging import get_logger

if TYPE_CHECKING:
    from commerce_relay.core.settings.outbox import OutboxSettings
    from commerce_relay.infra.outbox.service import OutboxService

logger = get_logger(__name__, component="outbox-runner")

PROCESS_JOB_ID = "outbox_process_messages"
CLEANUP_JOB_ID = "outbox_cleanup_messages"


class OutboxProcessingService:
    """Runs the outbox publisher and sweeper on an AsyncIOScheduler."""

    def __init__(
        self,
        outbox_service: OutboxService,
        *,
        settings: OutboxSettings | None = None,
    ) -> None:
        self.outbox_service = outbox_service
        self.settings = settings or outbox_service.settings
        self._stop_event = asyncio.Event()
        self.scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine multiple pending executions into one
                "max_instances": 1,  # Only one instance of each job at a time
                "misfire_grace_time": 60,
            },
        )

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def _setup_jobs(self) -> None:
        self.scheduler.add_job(
            func=self.run_process_messages,
            trigger=IntervalTrigger(seconds=self.settings.processing_interval_ms / 1000),
            id=PROCESS_JOB_ID,
            name="Deliver due outbox messages",
            replace_existing=True,
        )
        self.scheduler.add_job(
            func=self.run_cleanup,
            trigger=IntervalTrigger(hours=self.settings.cleanup_interval_hours),
            id=CLEANUP_JOB_ID,
            name="Delete processed outbox messages past retention",
            replace_existing=True,
        )

    async def start(self) -> None:
        """Start the scheduler. Calling it while running is a no-op."""
        if self.scheduler.running:
            logger.warning("Outbox processing service is already running")
            return

        self._stop_event.clear()
        self._setup_jobs()
        self.scheduler.start()
        logger.info(
            "Outbox processing service started",
            extra={
                "processing_interval_ms": self.settings.processing_interval_ms,
                "cleanup_interval_hours": self.settings.cleanup_interval_hours,
                "days_to_keep": self.settings.days_to_keep_processed_messages,
            },
        )

    async def stop(self) -> None:
        """Stop the scheduler. A batch in flight stops at the next message boundary."""
        if not self.scheduler.running:
            logger.debug("Outbox processing service is not running")
            return

        self._stop_event.set()
        self.scheduler.shutdown(wait=False)
        logger.info("Outbox processing service stopped")

    async def run_process_messages(self) -> Any:
        """Job body: one publisher batch. Errors are logged, not raised."""
        try:
            return await self.outbox_service.process_messages(stop_event=self._stop_event)
        except Exception:
            logger.exception("Error occurred while processing outbox messages")
            return None

    async def run_cleanup(self) -> int | None:
        """Job body: one retention sweep. Errors are logged, not raised."""
        try:
            return await self.outbox_service.cleanup_old_messages(
                self.settings.days_to_keep_processed_messages,
                stop_event=self._stop_event,
            )
        except Exception:
            logger.exception("Error occurred while cleaning up outbox messages")
            return None

    def get_job_status(self) -> list[dict[str, Any]]:
        """Status of the scheduled jobs."""
        return [
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
                "trigger": str(job.trigger),
            }
            for job in self.scheduler.get_jobs()
        ]


__all__ = ["CLEANUP_JOB_ID", "PROCESS_JOB_ID", "OutboxProcessingService"]
