"""
Notification Relay - real-time events for connected clients.

Publishes JSON messages to a per-user Redis Pub/Sub channel; the socket
gateway that fans them out to browsers subscribes to those channels.
Delivery is best effort: a failed publish is logged and never reaches the
caller, because the state change it announces is already committed.
"""
import enum
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from payhook.core.logging import get_logger
from payhook.core.redis_client import get_redis

logger = get_logger(__name__)

_CHANNEL_PREFIX = "user_notifications"


class NotificationType(str, enum.Enum):
    PAYMENT_COMPLETED = "payment:completed"


def channel_name(user_id: int | str) -> str:
    """Pub/Sub channel for one user"""
    return f"{_CHANNEL_PREFIX}:{user_id}"


async def publish_user_event(
    user_id: int | str,
    notification_type: NotificationType,
    data: dict[str, Any],
) -> bool:
    """Publish an event to the user's channel. Returns False if it could not be sent."""
    try:
        message = json.dumps(
            {
                "type": notification_type.value,
                "data": data,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            ensure_ascii=False,
            default=str,
        )
        redis = await get_redis()
        receivers = await redis.publish(channel_name(user_id), message)
        logger.info(
            "Notification published",
            extra_data={
                "user_id": user_id,
                "type": notification_type.value,
                "receivers": receivers,
            },
        )
        return True
    except Exception as e:
        logger.error(
            "Failed to publish notification",
            extra_data={
                "user_id": user_id,
                "type": notification_type.value,
                "error": str(e),
            },
            exc_info=True,
        )
        return False


async def publish_payment_completed(
    *,
    booking_owner_id: int,
    payment_id: int,
    amount: Decimal | float,
    method: str,
) -> bool:
    return await publish_user_event(
        booking_owner_id,
        NotificationType.PAYMENT_COMPLETED,
        {
            "payment_id": payment_id,
            "amount": float(amount),
            "method": method,
            "booking_owner_id": booking_owner_id,
        },
    )
