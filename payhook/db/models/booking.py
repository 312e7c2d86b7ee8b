"""
Booking Model - only the fields the webhook engine touches.
"""
import enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Integer
from sqlalchemy.orm import relationship

from payhook.core.clock import utcnow
from payhook.db.database import Base


class BookingPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class Booking(Base):
    """A customer booking; payment_status follows its completed payment"""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)  # booking owner

    payment_status = Column(
        SQLEnum(
            BookingPaymentStatus,
            name="booking_payment_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
        default=BookingPaymentStatus.PENDING,
    )

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    payments = relationship("Payment", back_populates="booking")
