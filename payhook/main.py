"""
Payhook - Main FastAPI Application
"""
from fastapi import FastAPI

from payhook.core.config import settings
from payhook.core.logging import setup_logging, get_logger
from payhook.core.middleware import setup_middleware, setup_exception_handlers
from payhook.api.routes import router as api_router
from payhook.db.database import engine, Base
from payhook.db import models  # noqa: F401  registers tables on Base.metadata
from payhook.workers import scheduler

# Setup logging before anything else
setup_logging(
    level="DEBUG" if settings.DEBUG else "INFO",
    json_format=not settings.DEBUG,
)

logger = get_logger(__name__)


_OPENAPI_TAGS = [
    {
        "name": "Admin Webhooks",
        "description": "Monitoring and manual retry of stored payment gateway webhooks.",
    },
    {
        "name": "Cron",
        "description": "Entry point for an external scheduler driving webhook retries.",
    },
]


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description=(
        "Reliable processing of payment gateway webhooks (MoMo, ZaloPay, VNPay): "
        "durable storage, retries with exponential backoff and retention."
    ),
    openapi_tags=_OPENAPI_TAGS,
)

setup_middleware(app)
setup_exception_handlers(app)

app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup() -> None:
    """Create tables and start the in-process webhook jobs"""
    logger.info("Starting application", extra_data={"app_name": settings.APP_NAME})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialized")

    if settings.WEBHOOK_JOBS_ENABLED:
        scheduler.start_webhook_jobs()
    else:
        logger.info("In-process webhook jobs disabled")


@app.on_event("shutdown")
async def shutdown() -> None:
    logger.info("Shutting down application")
    # lets an in-flight batch finish before the pool goes away
    await scheduler.stop_webhook_jobs()

    from payhook.core.redis_client import close_redis
    await close_redis()
    await engine.dispose()
    logger.info("Database connections disposed")


@app.get(
    "/health",
    summary="Liveness probe",
    description="The process is up and responding. External dependencies are not checked.",
    tags=["Health"],
)
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}
