"""
Webhook processor dependency for the HTTP routes.

Overridden in tests to bind the processor to the test database.
"""
from payhook.domain.services.webhook_processor import WebhookProcessor

_processor: WebhookProcessor | None = None


def get_webhook_processor() -> WebhookProcessor:
    global _processor
    if _processor is None:
        _processor = WebhookProcessor()
    return _processor
