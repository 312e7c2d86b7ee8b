"""
Base interface for payment gateway webhook adapters.

Each gateway (MoMo, ZaloPay, VNPay) implements interpret(): it reads the
provider-specific payload and returns a GatewayNotification. Everything
after that (business failure handling, payment lookup, the atomic
Payment + Booking update and the real-time notification) is shared.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from payhook.core.exceptions import InvalidWebhookPayloadError
from payhook.core.logging import get_logger
from payhook.db.models.booking import BookingPaymentStatus
from payhook.db.models.payment import Payment, PaymentStatus
from payhook.db.models.webhook_event import WebhookProvider
from payhook.domain.services import notification_relay

logger = get_logger(__name__)


@dataclass(frozen=True)
class GatewayNotification:
    """Provider-neutral view of a payment webhook"""

    correlation_key: str | None
    transaction_id: str | None
    succeeded: bool
    gateway_response: dict[str, Any] = field(default_factory=dict)
    failure_reason: str | None = None


class BaseGatewayAdapter(ABC):
    """
    Applies one provider's payment notifications to domain state.

    handle() returns True when the notification is fully processed (including
    a payment the provider reports as failed) and False when the matching
    payment is not visible yet and the event should be retried. Unexpected
    errors propagate to the caller.
    """

    provider: WebhookProvider
    display_name: str

    @abstractmethod
    def interpret(self, payload: dict[str, Any]) -> GatewayNotification:
        """
        Extract the correlation key, transaction id and outcome.
        The outcome is decoded first: a declined payment needs no
        correlation key because nothing is looked up for it.

        Raises:
            InvalidWebhookPayloadError: when a successful payment has no
                correlation key.
        """

    def _require(self, payload: dict[str, Any], key: str) -> str:
        value = payload.get(key)
        if value is None or value == "":
            raise InvalidWebhookPayloadError(self.provider.value, key)
        return str(value)

    def _correlation_key(self, payload: dict[str, Any], key: str, succeeded: bool) -> str | None:
        if succeeded:
            return self._require(payload, key)
        value = payload.get(key)
        return str(value) if value not in (None, "") else None

    async def find_payment(self, db: AsyncSession, correlation_key: str) -> Payment | None:
        """Payment for this provider's order reference, with its booking loaded"""
        result = await db.execute(
            select(Payment)
            .where(
                Payment.gateway_correlation_key == correlation_key,
                Payment.payment_method == self.provider.value,
            )
            .options(joinedload(Payment.booking))
        )
        return result.scalar_one_or_none()

    async def handle(self, db: AsyncSession, payload: dict[str, Any]) -> bool:
        notification = self.interpret(payload)

        if not notification.succeeded:
            # the provider has finalized the failure; retrying cannot change it
            logger.warning(
                f"{self.display_name} payment failed",
                extra_data={
                    "provider": self.provider.value,
                    "correlation_key": notification.correlation_key,
                    "reason": notification.failure_reason,
                },
            )
            return True

        payment = await self.find_payment(db, notification.correlation_key)
        if payment is None:
            logger.error(
                f"Payment not found for {self.display_name} webhook",
                extra_data={
                    "provider": self.provider.value,
                    "correlation_key": notification.correlation_key,
                },
            )
            return False

        return await self.apply_effect(db, payment, notification)

    async def apply_effect(
        self,
        db: AsyncSession,
        payment: Payment,
        notification: GatewayNotification,
    ) -> bool:
        """Complete the payment and mark its booking paid in one transaction"""
        if payment.status == PaymentStatus.COMPLETED:
            logger.info(
                "Payment already completed",
                extra_data={
                    "payment_id": payment.id,
                    "provider": self.provider.value,
                    "transaction_id": notification.transaction_id,
                },
            )
            return True

        booking = payment.booking

        payment.status = PaymentStatus.COMPLETED
        payment.gateway_transaction_id = notification.transaction_id
        payment.gateway_response = notification.gateway_response
        booking.payment_status = BookingPaymentStatus.PAID
        await db.commit()

        await notification_relay.publish_payment_completed(
            booking_owner_id=booking.user_id,
            payment_id=payment.id,
            amount=payment.amount,
            method=self.display_name,
        )

        logger.info(
            f"{self.display_name} payment processed",
            extra_data={
                "payment_id": payment.id,
                "booking_id": booking.id,
                "correlation_key": notification.correlation_key,
                "transaction_id": notification.transaction_id,
            },
        )
        return True
