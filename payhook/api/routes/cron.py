"""
Cron Endpoint - lets an external scheduler drive the webhook jobs.

Meant for deployments without a long-running process (WEBHOOK_JOBS_ENABLED
off and no Celery beat). Each call reclaims stalled events and processes one
batch; a share of calls also runs the retention sweep.
"""
import hmac
import random

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from pydantic import BaseModel

from payhook.api.dependencies.processor import get_webhook_processor
from payhook.core.config import settings
from payhook.core.logging import get_logger
from payhook.domain.services.webhook_processor import WebhookProcessor

logger = get_logger(__name__)

router = APIRouter()


class CronRunResponse(BaseModel):
    success: bool = True
    message: str = "Webhook cron job completed"
    reclaimed: int
    successful: int
    failed: int
    cleaned_up: int | None = None


async def require_cron_secret(
    authorization: str | None = Header(default=None),
) -> None:
    """Bearer CRON_SECRET; not checked when CRON_SECRET is empty"""
    if not settings.CRON_SECRET:
        return
    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not hmac.compare_digest(authorization, expected):
        logger.warning("Cron endpoint access denied")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )


def should_run_cleanup() -> bool:
    return random.random() < settings.WEBHOOK_CRON_CLEANUP_PROBABILITY


@router.get(
    "/webhooks",
    response_model=CronRunResponse,
    summary="Run one webhook processing pass",
    responses={401: {"description": "Missing or wrong cron secret"}},
)
async def run_webhook_cron(
    _: None = Depends(require_cron_secret),
    processor: WebhookProcessor = Depends(get_webhook_processor),
) -> CronRunResponse:
    logger.info("Running webhook cron job")

    reclaimed = await processor.reclaim_stuck_webhooks()
    batch = await processor.process_pending_webhooks()

    cleaned_up = None
    if should_run_cleanup():
        cleaned_up = await processor.cleanup_old_webhooks()

    return CronRunResponse(
        reclaimed=reclaimed,
        successful=batch.successful,
        failed=batch.failed,
        cleaned_up=cleaned_up,
    )


@router.head("/webhooks", include_in_schema=False)
async def cron_health() -> Response:
    return Response(status_code=status.HTTP_200_OK)
