"""Order value, store errors, recovery record."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from storefront._types import Money, to_money
from storefront.cart import LineItem, normalize_item
from storefront.shipping import ShippingAddress


class OrderStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"


# ═══════════════════════════════════════════════════════════════════════════════
# Order
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class Order:
    """
    A paid order. `id` is empty until a store assigns one.
    """
    id: str
    items: tuple[LineItem, ...]
    subtotal: Money
    discount_amount: Money
    final_amount: Money
    shipping: ShippingAddress
    provider_order_id: str
    transaction_id: str
    coupon_id: str | None = None
    coupon_code: str | None = None
    status: OrderStatus = OrderStatus.COMPLETED
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def with_id(self, order_id: str) -> Order:
        return replace(self, id=order_id)

    def to_payload(self) -> dict[str, Any]:
        """Body of `POST /api/create-order`."""
        payload: dict[str, Any] = {
            "amount": str(self.final_amount),
            "subtotal": str(self.subtotal),
            "discountAmount": str(self.discount_amount),
            "items": json.dumps([item.to_dict() for item in self.items]),
            **self.shipping.to_wire(),
            "paypalOrderId": self.provider_order_id,
            "paypalTransactionId": self.transaction_id,
        }
        if self.coupon_id:
            payload["couponId"] = self.coupon_id
        if self.coupon_code:
            payload["couponCode"] = self.coupon_code
        return payload


def items_from_json(text: str) -> tuple[LineItem, ...]:
    """Parse the `items` wire field; raises ValueError on malformed input."""
    data = json.loads(text)
    if not isinstance(data, list):
        raise ValueError("items must be a JSON list")
    items = tuple(item for item in map(normalize_item, data) if item is not None)
    if not items:
        raise ValueError("items must contain at least one product")
    return items


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════

class OrderStoreError(Exception):
    """Store rejected or failed the write. 4xx status means retrying won't help."""

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.status is None or not 400 <= self.status < 500


@dataclass(frozen=True, slots=True)
class OrderSaveFailed:
    provider_order_id: str
    transaction_id: str
    message: str
    attempts: int
    status: int | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Recovery
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class RecoveryRecord:
    """Everything support needs to recreate an order whose payment went through."""
    provider_order_id: str
    transaction_id: str
    amount: Money
    items: tuple[LineItem, ...]
    shipping: ShippingAddress
    reason: str
    attempts: int = 0
    coupon_code: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "providerOrderId": self.provider_order_id,
            "transactionId": self.transaction_id,
            "amount": str(self.amount),
            "items": [item.to_dict() for item in self.items],
            "shipping": self.shipping.to_wire(),
            "reason": self.reason,
            "attempts": self.attempts,
            "couponCode": self.coupon_code,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> RecoveryRecord:
        return cls(
            provider_order_id=str(data["providerOrderId"]),
            transaction_id=str(data.get("transactionId", "")),
            amount=to_money(data.get("amount")),
            items=tuple(item for item in map(normalize_item, data.get("items") or ()) if item is not None),
            shipping=ShippingAddress.from_mapping(data.get("shipping") or {}),
            reason=str(data.get("reason", "")),
            attempts=int(data.get("attempts", 0)),
            coupon_code=data.get("couponCode"),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )
