"""
Webhook Event Store - idempotent ingestion of gateway notifications.

The (provider, external_id) unique constraint is the only guard against
duplicates: the insert runs in a savepoint and a losing concurrent insert
falls back to reading the row that won.
"""
from __future__ import annotations

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from payhook.core.clock import utcnow
from payhook.core.exceptions import WebhookEventNotFoundError, WebhookNotRetryableError
from payhook.core.logging import get_logger
from payhook.db.models.webhook_event import WebhookEvent, WebhookProvider, WebhookStatus

logger = get_logger(__name__)


class WebhookEventStore:
    """Read/create access to the webhook_events table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_external_id(
        self,
        external_id: str,
        provider: WebhookProvider | str | None = None,
    ) -> WebhookEvent | None:
        """
        Find an event by the provider's notification id.

        Without a provider the oldest match wins; a warning is logged when
        the id is shared across providers.
        """
        query = select(WebhookEvent).where(WebhookEvent.external_id == external_id)
        if provider is not None:
            query = query.where(WebhookEvent.provider == WebhookProvider(provider))
            result = await self.db.execute(query.order_by(WebhookEvent.created_at).limit(1))
            return result.scalar_one_or_none()

        result = await self.db.execute(query.order_by(WebhookEvent.created_at).limit(2))
        events = result.scalars().all()
        if len(events) > 1:
            logger.warning(
                "Several providers share this external id, using the oldest event",
                extra_data={
                    "external_id": external_id,
                    "providers": [e.provider.value for e in events],
                },
            )
        return events[0] if events else None

    async def get_by_id(self, event_id: str) -> WebhookEvent | None:
        result = await self.db.execute(
            select(WebhookEvent).where(WebhookEvent.id == event_id)
        )
        return result.scalar_one_or_none()

    async def store_event(
        self,
        provider: WebhookProvider | str,
        event_type: str,
        external_id: str,
        payload: dict[str, Any],
    ) -> WebhookEvent:
        """
        Record a notification, or return the existing record unchanged.

        Duplicate deliveries are not errors: the first stored payload wins
        and later ones are dropped.
        """
        provider = WebhookProvider(provider)

        existing = await self.get_by_external_id(external_id, provider)
        if existing:
            logger.info(
                "Webhook event already exists",
                extra_data={"provider": provider.value, "external_id": external_id},
            )
            return existing

        event = WebhookEvent(
            provider=provider,
            event_type=event_type,
            external_id=external_id,
            payload=payload,
            status=WebhookStatus.PENDING,
            attempts=0,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(event)
        except IntegrityError:
            # a concurrent delivery inserted the same key first
            logger.info(
                "Webhook event inserted concurrently, returning stored copy",
                extra_data={"provider": provider.value, "external_id": external_id},
            )
            existing = await self.get_by_external_id(external_id, provider)
            if existing is None:
                raise
            return existing

        await self.db.commit()
        logger.info(
            "Webhook event stored",
            extra_data={
                "event_id": event.id,
                "provider": provider.value,
                "event_type": event_type,
                "external_id": external_id,
            },
        )
        return event

    # ==================== monitoring ====================

    async def list_events(
        self,
        status: WebhookStatus | None = None,
        provider: WebhookProvider | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[WebhookEvent], int]:
        """Newest events first, filtered, with the unpaginated total"""
        filters = []
        if status is not None:
            filters.append(WebhookEvent.status == status)
        if provider is not None:
            filters.append(WebhookEvent.provider == provider)

        total = await self.db.scalar(
            select(func.count(WebhookEvent.id)).where(*filters)
        )
        result = await self.db.execute(
            select(WebhookEvent)
            .where(*filters)
            .order_by(WebhookEvent.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0

    async def count_by_status(self) -> dict[str, int]:
        result = await self.db.execute(
            select(WebhookEvent.status, func.count(WebhookEvent.id))
            .group_by(WebhookEvent.status)
        )
        counts = {s.value: 0 for s in WebhookStatus}
        for row_status, count in result.all():
            counts[WebhookStatus(row_status).value] = count
        return counts

    async def reset_for_retry(self, event_id: str) -> WebhookEvent:
        """
        Make an event due again immediately (operator action).

        An exhausted event gets a fresh attempt budget, otherwise the
        batch scheduler would never select it.

        Raises:
            WebhookEventNotFoundError: unknown id.
            WebhookNotRetryableError: the event already completed.
        """
        event = await self.get_by_id(event_id)
        if event is None:
            raise WebhookEventNotFoundError(event_id)
        if event.status == WebhookStatus.COMPLETED:
            raise WebhookNotRetryableError(event_id, event.status.value)

        previous_status = event.status
        if previous_status == WebhookStatus.FAILED:
            event.attempts = 0
        event.status = WebhookStatus.PENDING
        event.next_retry_at = utcnow()
        event.error_message = None
        await self.db.commit()

        logger.info(
            "Webhook event reset for retry",
            extra_data={"event_id": event_id, "previous_status": previous_status.value},
        )
        return event
