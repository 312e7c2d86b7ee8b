"""
Database Models
"""
from payhook.db.models.booking import Booking, BookingPaymentStatus
from payhook.db.models.payment import Payment, PaymentStatus
from payhook.db.models.webhook_event import WebhookEvent, WebhookProvider, WebhookStatus

__all__ = [
    "Booking",
    "BookingPaymentStatus",
    "Payment",
    "PaymentStatus",
    "WebhookEvent",
    "WebhookProvider",
    "WebhookStatus",
]
