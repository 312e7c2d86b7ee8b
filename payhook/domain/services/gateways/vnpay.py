"""
VNPay IPN adapter.

Payload fields: vnp_TxnRef (our correlation key), vnp_TransactionNo,
vnp_Amount, vnp_ResponseCode ("00" = success).
"""
from typing import Any

from payhook.db.models.webhook_event import WebhookProvider
from payhook.domain.services.gateways.base_adapter import BaseGatewayAdapter, GatewayNotification

VNPAY_SUCCESS_CODE = "00"


class VNPayAdapter(BaseGatewayAdapter):
    provider = WebhookProvider.VNPAY
    display_name = "VNPay"

    def interpret(self, payload: dict[str, Any]) -> GatewayNotification:
        transaction_no = payload.get("vnp_TransactionNo")
        response_code = payload.get("vnp_ResponseCode")
        if response_code is not None:
            response_code = str(response_code)

        succeeded = response_code == VNPAY_SUCCESS_CODE
        txn_ref = self._correlation_key(payload, "vnp_TxnRef", succeeded)

        return GatewayNotification(
            correlation_key=txn_ref,
            transaction_id=str(transaction_no) if transaction_no is not None else None,
            succeeded=succeeded,
            gateway_response={
                "vnpayTransactionNo": transaction_no,
                "vnpTxnRef": txn_ref,
                "vnpResponseCode": response_code,
            },
            failure_reason=f"vnp_ResponseCode={response_code}",
        )
