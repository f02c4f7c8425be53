"""Purchase analytics."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

import structlog

from storefront.orders import Order
from storefront.pricing import to_provider_amount


class AnalyticsSink(Protocol):
    async def track(self, event: str, params: Mapping[str, Any]) -> None: ...


class LogAnalyticsSink:
    """Writes events to the structured log."""

    def __init__(self) -> None:
        self._log = structlog.get_logger().bind(component="analytics")

    async def track(self, event: str, params: Mapping[str, Any]) -> None:
        self._log.info("analytics.event", event=event, **params)


def purchase_params(order: Order, currency: str = "USD") -> dict[str, Any]:
    return {
        "transaction_id": order.transaction_id,
        "value": to_provider_amount(order.final_amount),
        "currency": currency,
        "items": [
            {
                "item_id": item.id,
                "item_name": item.name,
                "price": to_provider_amount(item.unit_price),
                "quantity": item.quantity,
            }
            for item in order.items
        ],
    }
