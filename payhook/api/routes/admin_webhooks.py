"""
Admin Webhook Endpoints - monitoring and manual retry of gateway notifications.
"""
from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from payhook.api.dependencies.admin_auth import require_admin_api_key
from payhook.core.logging import get_logger
from payhook.db.database import get_db
from payhook.db.models.webhook_event import WebhookProvider, WebhookStatus
from payhook.domain.services.event_store import WebhookEventStore

logger = get_logger(__name__)

router = APIRouter()


# ─── Pydantic models ────────────────────────────────────────────────────────

class WebhookEventResponse(BaseModel):
    """A stored webhook event"""
    id: str
    provider: WebhookProvider
    event_type: str
    external_id: str
    status: WebhookStatus
    attempts: int
    payload: dict[str, Any]
    error_message: str | None
    last_attempt_at: datetime | None
    next_retry_at: datetime | None
    processed_at: datetime | None
    created_at: datetime | None

    class Config:
        from_attributes = True


class WebhookStatsResponse(BaseModel):
    """Event counts per status across the whole table"""
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0


class WebhookListResponse(BaseModel):
    webhooks: list[WebhookEventResponse]
    total: int = Field(description="Number of events matching the filters")
    stats: WebhookStatsResponse


class RetryWebhookRequest(BaseModel):
    event_id: str = Field(min_length=1)


class RetryWebhookResponse(BaseModel):
    success: bool = True
    message: str
    event_id: str
    status: WebhookStatus
    attempts: int


_AUTH_RESPONSES = {
    401: {"description": "Missing API key"},
    403: {"description": "Invalid or unconfigured API key"},
}


@router.get(
    "/webhooks",
    response_model=WebhookListResponse,
    summary="List webhook events",
    description="Newest first, optionally filtered by status and provider, with per-status counts.",
    responses={200: {"description": "Page of webhook events"}, **_AUTH_RESPONSES},
)
async def list_webhooks(
    _: None = Depends(require_admin_api_key),
    db: AsyncSession = Depends(get_db),
    status: Optional[WebhookStatus] = Query(default=None, description="pending, processing, completed, failed"),
    provider: Optional[WebhookProvider] = Query(default=None, description="momo, zalopay, vnpay"),
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
) -> WebhookListResponse:
    store = WebhookEventStore(db)
    events, total = await store.list_events(
        status=status, provider=provider, limit=limit, offset=offset
    )
    counts = await store.count_by_status()

    return WebhookListResponse(
        webhooks=[WebhookEventResponse.model_validate(event) for event in events],
        total=total,
        stats=WebhookStatsResponse(total=sum(counts.values()), **counts),
    )


@router.post(
    "/webhooks/retry",
    response_model=RetryWebhookResponse,
    summary="Schedule a webhook event for immediate retry",
    description=(
        "Resets a pending or failed event to pending with next_retry_at=now. "
        "A failed event gets a fresh attempt budget. Completed events cannot be retried."
    ),
    responses={
        200: {"description": "Event scheduled for retry"},
        404: {"description": "Event not found"},
        409: {"description": "Event already completed"},
        **_AUTH_RESPONSES,
    },
)
async def retry_webhook(
    request: RetryWebhookRequest,
    _: None = Depends(require_admin_api_key),
    db: AsyncSession = Depends(get_db),
) -> RetryWebhookResponse:
    event = await WebhookEventStore(db).reset_for_retry(request.event_id)
    logger.info(
        "Manual webhook retry requested",
        extra_data={"event_id": event.id, "external_id": event.external_id},
    )
    return RetryWebhookResponse(
        message="Webhook scheduled for retry",
        event_id=event.id,
        status=event.status,
        attempts=event.attempts,
    )
