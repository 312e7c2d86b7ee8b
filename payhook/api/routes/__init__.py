"""
API Routes
"""
from fastapi import APIRouter

from payhook.api.routes.admin_webhooks import router as admin_webhooks_router
from payhook.api.routes.cron import router as cron_router

router = APIRouter()

router.include_router(admin_webhooks_router, prefix="/admin", tags=["Admin Webhooks"])
router.include_router(cron_router, prefix="/cron", tags=["Cron"])
