"""
Celery Tasks for the webhook jobs

Each task builds its own engine (see get_task_session_factory) and runs the
async processor on a fresh event loop.
"""
from __future__ import annotations

import asyncio
from contextlib import contextmanager

from payhook.core.logging import get_logger, log_job_run, set_correlation_id
from payhook.db.database import get_task_session_factory
from payhook.domain.services.webhook_processor import WebhookProcessor
from payhook.workers.celery_app import celery_app

logger = get_logger(__name__)


@contextmanager
def get_event_loop():
    """
    New event loop per task, closed (with the Redis client bound to it)
    when the task is done.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        yield loop
    finally:
        try:
            from payhook.core.redis_client import close_redis
            loop.run_until_complete(close_redis())
        except Exception as e:
            logger.warning(
                "Failed to close Redis at task end",
                extra_data={"error": str(e)},
            )
        try:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()


def run_async(coro):
    """Run a coroutine from a sync Celery task under a new correlation id"""
    set_correlation_id()

    with get_event_loop() as loop:
        return loop.run_until_complete(coro)


@celery_app.task(name="payhook.workers.tasks.process_pending_webhooks")
def process_pending_webhooks():
    """Reclaim stalled events, then process one batch of due events"""

    @log_job_run("process_pending_webhooks")
    async def _process():
        async with get_task_session_factory() as session_factory:
            processor = WebhookProcessor(session_factory=session_factory)
            reclaimed = await processor.reclaim_stuck_webhooks()
            batch = await processor.process_pending_webhooks()
            return {
                "reclaimed": reclaimed,
                "processed": batch.total,
                "successful": batch.successful,
                "failed": batch.failed,
            }

    return run_async(_process())


@celery_app.task(name="payhook.workers.tasks.cleanup_old_webhook_events")
def cleanup_old_webhook_events(days: int | None = None):
    """Delete completed/failed events older than the retention window"""

    @log_job_run("cleanup_old_webhook_events")
    async def _cleanup():
        async with get_task_session_factory() as session_factory:
            processor = WebhookProcessor(session_factory=session_factory)
            deleted = await processor.cleanup_old_webhooks(days)
            return {"deleted": deleted}

    return run_async(_cleanup())
