"""
Gateway adapter registry.

Adding a gateway means adding a WebhookProvider member, an adapter module
and one entry in _ADAPTERS.
"""
from __future__ import annotations

from typing import Mapping

from payhook.core.exceptions import UnknownProviderError
from payhook.db.models.webhook_event import WebhookProvider
from payhook.domain.services.gateways.base_adapter import BaseGatewayAdapter, GatewayNotification
from payhook.domain.services.gateways.momo import MoMoAdapter
from payhook.domain.services.gateways.vnpay import VNPayAdapter
from payhook.domain.services.gateways.zalopay import ZaloPayAdapter

_ADAPTERS: dict[WebhookProvider, BaseGatewayAdapter] = {
    WebhookProvider.MOMO: MoMoAdapter(),
    WebhookProvider.ZALOPAY: ZaloPayAdapter(),
    WebhookProvider.VNPAY: VNPayAdapter(),
}


def default_adapters() -> Mapping[WebhookProvider, BaseGatewayAdapter]:
    return dict(_ADAPTERS)


def get_gateway_adapter(
    provider: WebhookProvider | str,
    adapters: Mapping[WebhookProvider, BaseGatewayAdapter] | None = None,
) -> BaseGatewayAdapter:
    """
    Adapter for a provider.

    Raises:
        UnknownProviderError: when no adapter handles the provider.
    """
    registry = _ADAPTERS if adapters is None else adapters
    try:
        key = WebhookProvider(provider)
    except ValueError:
        raise UnknownProviderError(str(provider)) from None

    adapter = registry.get(key)
    if adapter is None:
        raise UnknownProviderError(key.value)
    return adapter


__all__ = [
    "BaseGatewayAdapter",
    "GatewayNotification",
    "MoMoAdapter",
    "ZaloPayAdapter",
    "VNPayAdapter",
    "default_adapters",
    "get_gateway_adapter",
]
