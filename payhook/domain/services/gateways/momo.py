"""
MoMo IPN adapter.

Payload fields: orderId (our correlation key), requestId, transId,
amount, resultCode (0 = success), message.
"""
from typing import Any

from payhook.db.models.webhook_event import WebhookProvider
from payhook.domain.services.gateways.base_adapter import BaseGatewayAdapter, GatewayNotification

MOMO_SUCCESS_CODE = 0


class MoMoAdapter(BaseGatewayAdapter):
    provider = WebhookProvider.MOMO
    display_name = "MoMo"

    def interpret(self, payload: dict[str, Any]) -> GatewayNotification:
        trans_id = payload.get("transId")
        message = payload.get("message")

        try:
            result_code = int(payload.get("resultCode"))
        except (TypeError, ValueError):
            result_code = None

        succeeded = result_code == MOMO_SUCCESS_CODE
        order_id = self._correlation_key(payload, "orderId", succeeded)

        return GatewayNotification(
            correlation_key=order_id,
            transaction_id=str(trans_id) if trans_id is not None else None,
            succeeded=succeeded,
            gateway_response={
                "momoRequestId": payload.get("requestId"),
                "momoMessage": message,
                "momoTransId": trans_id,
            },
            failure_reason=message,
        )
