"""
In-process timers for the webhook jobs.

Used when the API process drives retries itself (WEBHOOK_JOBS_ENABLED).
The same work can instead be scheduled by Celery beat or an external cron
hitting /api/cron/webhooks; only one of those should be active per database.
"""
from __future__ import annotations

import asyncio
from functools import partial
from typing import Any, Awaitable, Callable

from payhook.core.config import settings
from payhook.core.logging import get_logger, log_job_run, set_correlation_id
from payhook.domain.services.webhook_processor import WebhookProcessor

logger = get_logger(__name__)


class PeriodicJob:
    """
    Run a coroutine function now and then every `interval` seconds.

    Each run is awaited before the next sleep starts, so a job never
    overlaps itself. stop() ends the timer but lets a run that is already
    in progress finish.
    """

    def __init__(
        self,
        name: str,
        job: Callable[[], Awaitable[Any]],
        interval: float,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.job = job
        self.interval = interval
        self._task: asyncio.Task | None = None
        self._current_run: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None

    def start(self) -> bool:
        """Start the timer. Returns False (and warns) if it is already running."""
        if self._task is not None:
            logger.warning(f"{self.name} already running")
            return False

        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.info(
            f"{self.name} started with {self.interval}s interval",
            extra_data={"job": self.name, "interval_seconds": self.interval},
        )
        return True

    async def stop(self) -> None:
        if self._task is None:
            return

        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

        run = self._current_run
        if run is not None and not run.done():
            await run
        self._current_run = None
        logger.info(f"{self.name} stopped", extra_data={"job": self.name})

    async def _loop(self) -> None:
        while True:
            self._current_run = asyncio.create_task(self._run_once())
            # shielded so cancelling the timer does not interrupt the run
            await asyncio.shield(self._current_run)
            await asyncio.sleep(self.interval)

    async def _run_once(self) -> None:
        set_correlation_id()
        try:
            await self.job()
        except Exception as e:
            logger.error(
                f"{self.name} run failed",
                extra_data={"job": self.name, "error": str(e)},
                exc_info=True,
            )


@log_job_run("Webhook processor tick")
async def process_tick(processor: WebhookProcessor) -> None:
    """One scheduler tick: recover stalled events, then work the due batch"""
    await processor.reclaim_stuck_webhooks()
    await processor.process_pending_webhooks()


@log_job_run("Webhook cleanup tick")
async def cleanup_tick(processor: WebhookProcessor, days_to_keep: int | None = None) -> None:
    await processor.cleanup_old_webhooks(days_to_keep)


_processor_job: PeriodicJob | None = None
_cleanup_job: PeriodicJob | None = None


def start_webhook_processor(
    interval: float | None = None,
    processor: WebhookProcessor | None = None,
) -> PeriodicJob:
    global _processor_job
    if _processor_job is None or not _processor_job.is_running:
        _processor_job = PeriodicJob(
            "Webhook processor",
            partial(process_tick, processor or WebhookProcessor()),
            interval or settings.WEBHOOK_PROCESSOR_INTERVAL_SECONDS,
        )
    _processor_job.start()
    return _processor_job


async def stop_webhook_processor() -> None:
    global _processor_job
    if _processor_job is not None:
        await _processor_job.stop()
        _processor_job = None


def start_webhook_cleanup(
    interval: float | None = None,
    processor: WebhookProcessor | None = None,
    days_to_keep: int | None = None,
) -> PeriodicJob:
    global _cleanup_job
    if _cleanup_job is None or not _cleanup_job.is_running:
        _cleanup_job = PeriodicJob(
            "Webhook cleanup",
            partial(cleanup_tick, processor or WebhookProcessor(), days_to_keep),
            interval or settings.WEBHOOK_CLEANUP_INTERVAL_SECONDS,
        )
    _cleanup_job.start()
    return _cleanup_job


async def stop_webhook_cleanup() -> None:
    global _cleanup_job
    if _cleanup_job is not None:
        await _cleanup_job.stop()
        _cleanup_job = None


def start_webhook_jobs(processor: WebhookProcessor | None = None) -> None:
    """Start both timers with intervals from settings, sharing one processor"""
    processor = processor or WebhookProcessor()
    start_webhook_processor(processor=processor)
    start_webhook_cleanup(processor=processor)


async def stop_webhook_jobs() -> None:
    await stop_webhook_processor()
    await stop_webhook_cleanup()
