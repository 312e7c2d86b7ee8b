"""
Celery Application Configuration

Optional deployment of the webhook jobs: run a worker plus beat instead of
the in-process timers (set WEBHOOK_JOBS_ENABLED=false on the API process).
"""
from celery import Celery

from payhook.core.config import settings

celery_app = Celery(
    "payhook",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["payhook.workers.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.conf.beat_schedule = {
    "process-pending-webhooks": {
        "task": "payhook.workers.tasks.process_pending_webhooks",
        "schedule": settings.WEBHOOK_PROCESSOR_INTERVAL_SECONDS,
    },
    "cleanup-old-webhook-events": {
        "task": "payhook.workers.tasks.cleanup_old_webhook_events",
        "schedule": settings.WEBHOOK_CLEANUP_INTERVAL_SECONDS,
    },
}
