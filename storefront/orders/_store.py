"""
Order stores.

`create` is idempotent on `transaction_id`: a repeated create returns the
order stored the first time.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Protocol

import httpx

from storefront._types import to_money
from storefront.orders._types import Order, OrderStatus, OrderStoreError, items_from_json
from storefront.shipping import ShippingAddress


class OrderStore(Protocol):
    async def create(self, order: Order) -> Order: ...
    async def get(self, order_id: str) -> Order | None: ...
    async def get_by_transaction(self, transaction_id: str) -> Order | None: ...
    async def update_status(self, order_id: str, status: OrderStatus) -> Order: ...


def new_order_id() -> str:
    return f"ord_{uuid.uuid4().hex[:16]}"


# ═══════════════════════════════════════════════════════════════════════════════
# Memory
# ═══════════════════════════════════════════════════════════════════════════════

class MemoryOrderStore:
    def __init__(self) -> None:
        self._orders: dict[str, Order] = {}
        self._by_transaction: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def create(self, order: Order) -> Order:
        async with self._lock:
            existing = self._by_transaction.get(order.transaction_id)
            if existing is not None:
                return self._orders[existing]
            saved = order.with_id(new_order_id())
            self._orders[saved.id] = saved
            self._by_transaction[saved.transaction_id] = saved.id
            return saved

    async def get(self, order_id: str) -> Order | None:
        return self._orders.get(order_id)

    async def get_by_transaction(self, transaction_id: str) -> Order | None:
        order_id = self._by_transaction.get(transaction_id)
        return None if order_id is None else self._orders[order_id]

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        async with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderStoreError(f"Order {order_id} not found", status=404)
            updated = replace(order, status=status)
            self._orders[order_id] = updated
            return updated

    def __len__(self) -> int:
        return len(self._orders)


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP
# ═══════════════════════════════════════════════════════════════════════════════

class HttpOrderStore:
    """
    Client of the order endpoint (`storefront.server`).

    Network failures and 5xx raise a retryable OrderStoreError; 4xx carries
    its status and is not retried.
    """

    def __init__(self, client: httpx.AsyncClient, endpoint: str, orders_url: str | None = None) -> None:
        self._client = client
        self._endpoint = endpoint
        self._orders_url = (orders_url or endpoint.rsplit("/", 1)[0] + "/orders").rstrip("/")

    async def create(self, order: Order) -> Order:
        body = await self._request("POST", self._endpoint, json=order.to_payload())
        if not body.get("success") or not body.get("orderId"):
            raise OrderStoreError(str(body.get("error") or "Order endpoint returned no order id"))
        return order.with_id(str(body["orderId"]))

    async def get(self, order_id: str) -> Order | None:
        try:
            body = await self._request("GET", f"{self._orders_url}/{order_id}")
        except OrderStoreError as e:
            if e.status == 404:
                return None
            raise
        return order_from_wire(body)

    async def get_by_transaction(self, transaction_id: str) -> Order | None:
        try:
            body = await self._request("GET", self._orders_url, params={"transactionId": transaction_id})
        except OrderStoreError as e:
            if e.status == 404:
                return None
            raise
        return order_from_wire(body)

    async def update_status(self, order_id: str, status: OrderStatus) -> Order:
        body = await self._request("PATCH", f"{self._orders_url}/{order_id}", json={"status": status.value})
        return order_from_wire(body)

    async def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise OrderStoreError(f"Order endpoint unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.is_error:
            raise OrderStoreError(
                str(body.get("error") or f"Order endpoint returned {response.status_code}"),
                status=response.status_code,
            )
        return body


def order_to_wire(order: Order) -> dict[str, Any]:
    return {
        **order.to_payload(),
        "id": order.id,
        "status": order.status.value,
        "createdAt": order.created_at.isoformat(),
    }


def order_from_wire(data: dict[str, Any]) -> Order:
    return Order(
        id=str(data["id"]),
        items=items_from_json(data["items"]),
        subtotal=to_money(data.get("subtotal", data.get("amount"))),
        discount_amount=to_money(data.get("discountAmount", 0)),
        final_amount=to_money(data["amount"]),
        shipping=ShippingAddress.from_mapping(data),
        provider_order_id=str(data.get("paypalOrderId", "")),
        transaction_id=str(data.get("paypalTransactionId", "")),
        coupon_id=data.get("couponId"),
        coupon_code=data.get("couponCode"),
        status=OrderStatus(data.get("status", OrderStatus.COMPLETED.value)),
        created_at=datetime.fromisoformat(data["createdAt"]),
    )
