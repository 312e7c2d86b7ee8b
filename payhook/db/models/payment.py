"""
Payment Model - the gateway-facing side of a booking payment.

Owned by the booking domain; the webhook engine only reads it by
correlation key and completes it.
"""
import enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Index, Integer, JSON, Numeric, String
from sqlalchemy.orm import relationship

from payhook.core.clock import utcnow
from payhook.db.database import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class Payment(Base):
    """A single payment attempt against a booking"""

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(
        SQLEnum(
            PaymentStatus,
            name="payment_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    payment_method = Column(String(20), nullable=False)  # momo / zalopay / vnpay

    # The provider's own order reference, echoed back in the webhook payload
    gateway_correlation_key = Column(String(100), nullable=False)
    gateway_transaction_id = Column(String(100), nullable=True)
    gateway_response = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    booking = relationship("Booking", back_populates="payments")

    __table_args__ = (
        Index("ix_payments_correlation_method", "gateway_correlation_key", "payment_method"),
    )
