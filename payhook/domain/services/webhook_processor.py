"""
Webhook Processor - retry state machine for stored gateway notifications.

    pending -> processing -> completed
                          -> pending   (retry scheduled with backoff)
                          -> failed    (attempts exhausted / no adapter)

Event bookkeeping and the domain update use separate sessions, so a
rolled-back Payment/Booking transaction never discards the status write
that records the attempt.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payhook.core.clock import utcnow
from payhook.core.config import settings
from payhook.core.exceptions import UnknownProviderError
from payhook.core.logging import get_logger
from payhook.db.models.webhook_event import (
    TERMINAL_STATUSES,
    WebhookEvent,
    WebhookProvider,
    WebhookStatus,
)
from payhook.domain.services.event_store import WebhookEventStore
from payhook.domain.services.gateways import BaseGatewayAdapter, get_gateway_adapter
from payhook.domain.services.retry_policy import RetryPolicy

logger = get_logger(__name__)


@dataclass(frozen=True)
class BatchResult:
    successful: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.successful + self.failed


class WebhookProcessor:
    """Drives stored webhook events to a terminal state"""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        retry_policy: RetryPolicy | None = None,
        batch_size: int | None = None,
        adapters: Mapping[WebhookProvider, BaseGatewayAdapter] | None = None,
    ):
        if session_factory is None:
            from payhook.db.database import AsyncSessionLocal
            session_factory = AsyncSessionLocal
        self.session_factory = session_factory
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.batch_size = batch_size or settings.WEBHOOK_BATCH_SIZE
        self.adapters = adapters

    # ==================== single event ====================

    async def process_event(
        self,
        external_id: str,
        provider: WebhookProvider | str | None = None,
    ) -> bool:
        """
        Process one event.

        Returns True when the event is completed (now or earlier) and False
        when it was rescheduled, exhausted, dead or missing. Never raises.
        """
        try:
            async with self.session_factory() as db:
                return await self._process(db, external_id, provider)
        except Exception as e:
            logger.error(
                "Failed to process webhook event",
                extra_data={"external_id": external_id, "error": str(e)},
                exc_info=True,
            )
            return False

    async def _process(
        self,
        db: AsyncSession,
        external_id: str,
        provider: WebhookProvider | str | None,
    ) -> bool:
        event = await WebhookEventStore(db).get_by_external_id(external_id, provider)
        if event is None:
            logger.error(
                "Webhook event not found",
                extra_data={"external_id": external_id},
            )
            return False

        log_data = {
            "event_id": event.id,
            "provider": event.provider.value,
            "external_id": external_id,
        }

        if event.status == WebhookStatus.COMPLETED:
            logger.info("Webhook event already processed", extra_data=log_data)
            return True

        if event.status == WebhookStatus.FAILED and self.retry_policy.is_exhausted(event.attempts):
            logger.error(
                "Webhook event exceeded max attempts",
                extra_data={**log_data, "attempts": event.attempts},
            )
            return False

        event.status = WebhookStatus.PROCESSING
        event.last_attempt_at = utcnow()
        await db.commit()

        try:
            adapter = get_gateway_adapter(event.provider, self.adapters)
        except UnknownProviderError as e:
            # configuration error: retrying would fail the same way
            logger.error("Unknown webhook provider", extra_data=log_data)
            await self._mark_dead(db, event, e.message)
            return False

        error: str | None = None
        try:
            async with self.session_factory() as domain_db:
                handled = await adapter.handle(domain_db, event.payload)
        except Exception as e:
            handled = False
            error = str(e) or type(e).__name__
            logger.error(
                "Webhook handler error",
                extra_data={**log_data, "error": error},
                exc_info=True,
            )

        if handled:
            event.status = WebhookStatus.COMPLETED
            event.processed_at = utcnow()
            event.next_retry_at = None
            event.error_message = None
            await db.commit()
            logger.info("Webhook event processed successfully", extra_data=log_data)
            return True

        await self.schedule_retry(db, event, error)
        return False

    async def _mark_dead(self, db: AsyncSession, event: WebhookEvent, reason: str) -> None:
        event.status = WebhookStatus.FAILED
        event.next_retry_at = None
        event.error_message = reason
        await db.commit()

    async def schedule_retry(
        self,
        db: AsyncSession,
        event: WebhookEvent,
        error: str | None = None,
    ) -> None:
        """Count the failed attempt and either reschedule or give up"""
        policy = self.retry_policy
        attempts = min((event.attempts or 0) + 1, policy.max_attempts)
        event.attempts = attempts

        if policy.is_exhausted(attempts):
            event.status = WebhookStatus.FAILED
            event.next_retry_at = None
            message = f"Max attempts ({policy.max_attempts}) exceeded"
        else:
            next_retry_at = utcnow() + policy.delay_for(attempts)
            event.status = WebhookStatus.PENDING
            event.next_retry_at = next_retry_at
            message = f"Retry scheduled for {next_retry_at.isoformat()}Z"

        event.error_message = f"{message}: {error}" if error else message
        await db.commit()

        logger.info(
            "Webhook retry scheduled" if event.status == WebhookStatus.PENDING
            else "Webhook event failed permanently",
            extra_data={
                "event_id": event.id,
                "external_id": event.external_id,
                "attempts": attempts,
                "next_retry_at": event.next_retry_at,
            },
        )

    # ==================== batch scheduler ====================

    async def get_due_events(self, db: AsyncSession) -> list[WebhookEvent]:
        """Pending events whose retry time has come, oldest first"""
        now = utcnow()
        result = await db.execute(
            select(WebhookEvent)
            .where(
                WebhookEvent.status == WebhookStatus.PENDING,
                or_(
                    WebhookEvent.next_retry_at.is_(None),
                    WebhookEvent.next_retry_at <= now,
                ),
                WebhookEvent.attempts < self.retry_policy.max_attempts,
            )
            .order_by(WebhookEvent.created_at)
            .limit(self.batch_size)
        )
        return list(result.scalars().all())

    async def process_pending_webhooks(self) -> BatchResult:
        """Process one batch of due events concurrently. Never raises."""
        try:
            async with self.session_factory() as db:
                due = [(e.external_id, e.provider) for e in await self.get_due_events(db)]
        except Exception as e:
            logger.error(
                "Failed to process pending webhooks",
                extra_data={"error": str(e)},
                exc_info=True,
            )
            return BatchResult()

        logger.info(f"Processing {len(due)} pending webhooks")

        results = await asyncio.gather(
            *(self.process_event(external_id, provider) for external_id, provider in due),
            return_exceptions=True,
        )

        successful = sum(1 for r in results if r is True)
        batch = BatchResult(successful=successful, failed=len(results) - successful)
        logger.info(
            "Webhook processing completed",
            extra_data={"successful": batch.successful, "failed": batch.failed},
        )
        return batch

    async def reclaim_stuck_webhooks(self, stale_after_seconds: float | None = None) -> int:
        """
        Return events left in processing (e.g. after a crash) to pending.

        The interrupted attempt is not counted; the event becomes due
        immediately. Never raises.
        """
        if stale_after_seconds is None:
            stale_after_seconds = settings.WEBHOOK_STALE_PROCESSING_SECONDS
        now = utcnow()
        cutoff = now - timedelta(seconds=stale_after_seconds)

        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    update(WebhookEvent)
                    .where(
                        WebhookEvent.status == WebhookStatus.PROCESSING,
                        WebhookEvent.last_attempt_at < cutoff,
                    )
                    .values(
                        status=WebhookStatus.PENDING,
                        next_retry_at=now,
                        error_message="Reclaimed after stalled processing",
                        updated_at=now,
                    )
                )
                await db.commit()
                reclaimed = result.rowcount or 0
        except Exception as e:
            logger.error(
                "Failed to reclaim stuck webhooks",
                extra_data={"error": str(e)},
                exc_info=True,
            )
            return 0

        if reclaimed:
            logger.warning(
                "Reclaimed stuck webhook events",
                extra_data={"reclaimed": reclaimed, "stale_after_seconds": stale_after_seconds},
            )
        return reclaimed

    # ==================== retention sweeper ====================

    async def cleanup_old_webhooks(self, days_to_keep: int | None = None) -> int:
        """Delete terminal events created before the retention window. Never raises."""
        if days_to_keep is None:
            days_to_keep = settings.WEBHOOK_RETENTION_DAYS
        cutoff = utcnow() - timedelta(days=days_to_keep)

        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    delete(WebhookEvent).where(
                        WebhookEvent.status.in_(TERMINAL_STATUSES),
                        WebhookEvent.created_at < cutoff,
                    )
                )
                await db.commit()
                deleted = result.rowcount or 0
        except Exception as e:
            logger.error(
                "Failed to cleanup old webhooks",
                extra_data={"error": str(e)},
                exc_info=True,
            )
            return 0

        logger.info(
            f"Cleaned up {deleted} old webhook events",
            extra_data={"deleted": deleted, "days_to_keep": days_to_keep},
        )
        return deleted
