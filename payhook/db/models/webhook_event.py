"""
Webhook Event Model - durable inbox of gateway notifications.

Every notification is recorded once per (provider, external_id). The row
then carries the processing state machine: pending -> processing ->
completed | pending (retry) | failed.
"""
import enum
import uuid

from sqlalchemy import (
    Column,
    DateTime,
    Enum as SQLEnum,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)

from payhook.core.clock import utcnow
from payhook.db.database import Base


class WebhookProvider(str, enum.Enum):
    """Payment gateways that deliver webhooks"""
    MOMO = "momo"
    ZALOPAY = "zalopay"
    VNPAY = "vnpay"


class WebhookStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = (WebhookStatus.COMPLETED, WebhookStatus.FAILED)


class WebhookEvent(Base):
    """Inbound gateway notification with retry tracking"""

    __tablename__ = "webhook_events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    provider = Column(
        SQLEnum(
            WebhookProvider,
            name="webhook_provider",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    event_type = Column(String(50), nullable=False)  # e.g. "payment"
    external_id = Column(String(200), nullable=False)  # provider notification id
    payload = Column(JSON, nullable=False)

    status = Column(
        SQLEnum(
            WebhookStatus,
            name="webhook_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=WebhookStatus.PENDING,
    )
    attempts = Column(Integer, nullable=False, default=0)

    # Timestamps (naive UTC)
    last_attempt_at = Column(DateTime, nullable=True)
    next_retry_at = Column(DateTime, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Error tracking
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("provider", "external_id", name="uq_webhook_events_provider_external_id"),
        Index("ix_webhook_events_status_next_retry", "status", "next_retry_at"),
        Index("ix_webhook_events_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<WebhookEvent {self.provider}:{self.external_id} "
            f"status={self.status} attempts={self.attempts}>"
        )
