"""
Tests for the Celery webhook tasks - payhook/workers/tasks.py

Covers:
- process_pending_webhooks (reclaim + one batch)
- cleanup_old_webhook_events
- beat schedule registration
- event loop handling in run_async
"""
import asyncio
from contextlib import asynccontextmanager, contextmanager
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from payhook.core.clock import utcnow
from payhook.core.config import settings
from payhook.db.models.webhook_event import WebhookEvent, WebhookStatus
from payhook.workers.celery_app import celery_app
from payhook.workers.tasks import (
    cleanup_old_webhook_events,
    process_pending_webhooks,
    run_async,
)
from tests.payloads import momo_payload


@contextmanager
def _patch_task_runtime(database_url: str):
    """
    Let the sync Celery tasks run from an async test.

    run_async is replaced by a version that runs the coroutine on a new loop
    in a worker thread (the test loop is already running), and the task
    engine is pointed at the test database.
    """
    import concurrent.futures

    def _test_run_async(coro):
        from payhook.core.logging import set_correlation_id
        set_correlation_id()

        def _run_in_thread():
            new_loop = asyncio.new_event_loop()
            try:
                return new_loop.run_until_complete(coro)
            finally:
                new_loop.close()

        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(_run_in_thread)
            return future.result(timeout=30)

    @asynccontextmanager
    async def _test_session_factory():
        engine = create_async_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
        try:
            yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        finally:
            await engine.dispose()

    with patch("payhook.workers.tasks.run_async", side_effect=_test_run_async), \
         patch("payhook.workers.tasks.get_task_session_factory", _test_session_factory):
        yield


@pytest.mark.integration
class TestProcessPendingWebhooksTask:

    @pytest.mark.asyncio
    async def test_processes_due_events(
        self, test_database_url, payment_factory, webhook_event_factory, db_session
    ) -> None:
        await payment_factory(correlation_key="ORD-CELERY")
        done = await webhook_event_factory(payload=momo_payload("ORD-CELERY"))
        await webhook_event_factory(payload=momo_payload("ORD-MISSING"))
        await webhook_event_factory(
            status=WebhookStatus.PROCESSING,
            payload=momo_payload("ORD-STUCK"),
            last_attempt_at=utcnow() - timedelta(hours=2),
        )

        with _patch_task_runtime(test_database_url):
            result = process_pending_webhooks()

        assert result == {"reclaimed": 1, "processed": 3, "successful": 1, "failed": 2}

        status = await db_session.scalar(
            select(WebhookEvent.status).where(WebhookEvent.id == done.id)
        )
        assert status == WebhookStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_nothing_due(self, test_database_url, async_engine) -> None:
        with _patch_task_runtime(test_database_url):
            result = process_pending_webhooks()

        assert result == {"reclaimed": 0, "processed": 0, "successful": 0, "failed": 0}


@pytest.mark.integration
class TestCleanupTask:

    @pytest.mark.asyncio
    async def test_deletes_old_terminal_events(
        self, test_database_url, webhook_event_factory, db_session
    ) -> None:
        old = utcnow() - timedelta(days=40)
        await webhook_event_factory(status=WebhookStatus.COMPLETED, created_at=old)
        kept = await webhook_event_factory(status=WebhookStatus.PENDING, created_at=old)

        with _patch_task_runtime(test_database_url):
            result = cleanup_old_webhook_events()

        assert result == {"deleted": 1}
        remaining = (await db_session.execute(select(WebhookEvent.id))).scalars().all()
        assert remaining == [kept.id]

    @pytest.mark.asyncio
    async def test_explicit_retention(self, test_database_url, webhook_event_factory) -> None:
        await webhook_event_factory(
            status=WebhookStatus.FAILED, created_at=utcnow() - timedelta(days=3)
        )

        with _patch_task_runtime(test_database_url):
            assert cleanup_old_webhook_events(days=7) == {"deleted": 0}
            assert cleanup_old_webhook_events(days=2) == {"deleted": 1}


@pytest.mark.unit
class TestCeleryApp:

    def test_beat_schedule(self) -> None:
        schedule = celery_app.conf.beat_schedule

        process = schedule["process-pending-webhooks"]
        assert process["task"] == "payhook.workers.tasks.process_pending_webhooks"
        assert process["schedule"] == settings.WEBHOOK_PROCESSOR_INTERVAL_SECONDS

        cleanup = schedule["cleanup-old-webhook-events"]
        assert cleanup["task"] == "payhook.workers.tasks.cleanup_old_webhook_events"
        assert cleanup["schedule"] == settings.WEBHOOK_CLEANUP_INTERVAL_SECONDS

    def test_tasks_registered(self) -> None:
        assert "payhook.workers.tasks.process_pending_webhooks" in celery_app.tasks
        assert "payhook.workers.tasks.cleanup_old_webhook_events" in celery_app.tasks


@pytest.mark.unit
class TestRunAsync:

    def test_get_event_loop_creates_and_closes(self) -> None:
        from payhook.workers.tasks import get_event_loop

        with get_event_loop() as loop:
            assert loop.is_running() is False

        assert loop.is_closed()

    def test_runs_coroutine(self) -> None:
        async def _answer():
            return 42

        assert run_async(_answer()) == 42

    def test_pending_tasks_are_cancelled(self) -> None:
        leftover = {}

        async def _spawn():
            leftover["task"] = asyncio.create_task(asyncio.sleep(60))
            return "done"

        assert run_async(_spawn()) == "done"
        assert leftover["task"].cancelled()
