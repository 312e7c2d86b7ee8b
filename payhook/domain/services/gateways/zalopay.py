"""
ZaloPay callback adapter.

Payload fields: app_trans_id (our correlation key), zp_trans_id, amount,
status (1 = success).
"""
from typing import Any

from payhook.db.models.webhook_event import WebhookProvider
from payhook.domain.services.gateways.base_adapter import BaseGatewayAdapter, GatewayNotification

ZALOPAY_SUCCESS_STATUS = 1


class ZaloPayAdapter(BaseGatewayAdapter):
    provider = WebhookProvider.ZALOPAY
    display_name = "ZaloPay"

    def interpret(self, payload: dict[str, Any]) -> GatewayNotification:
        zp_trans_id = payload.get("zp_trans_id")

        try:
            status = int(payload.get("status"))
        except (TypeError, ValueError):
            status = None

        succeeded = status == ZALOPAY_SUCCESS_STATUS
        app_trans_id = self._correlation_key(payload, "app_trans_id", succeeded)

        return GatewayNotification(
            correlation_key=app_trans_id,
            transaction_id=str(zp_trans_id) if zp_trans_id is not None else None,
            succeeded=succeeded,
            gateway_response={
                "zaloPayTransId": zp_trans_id,
                "appTransId": app_trans_id,
                "status": status,
            },
            failure_reason=f"status={status}",
        )
