"""
Order confirmation email over the EmailJS REST API.
"""

from __future__ import annotations

import html
from collections.abc import Mapping
from typing import Any, Protocol

import httpx

from storefront.config import EmailSettings
from storefront.orders import Order
from storefront.pricing import to_provider_amount
from storefront.shipping import format_address_line


class EmailError(Exception):
    pass


class EmailSender(Protocol):
    async def send(self, params: Mapping[str, Any]) -> None: ...


class EmailJSSender:
    def __init__(self, client: httpx.AsyncClient, settings: EmailSettings) -> None:
        self._client = client
        self._settings = settings

    async def send(self, params: Mapping[str, Any]) -> None:
        body = {
            "service_id": self._settings.service_id,
            "template_id": self._settings.template_id,
            "user_id": self._settings.public_key,
            "template_params": dict(params),
        }
        try:
            response = await self._client.post(self._settings.endpoint, json=body)
        except httpx.HTTPError as e:
            raise EmailError(f"EmailJS unreachable: {e}") from e
        if response.is_error:
            raise EmailError(f"EmailJS rejected the message ({response.status_code}): {response.text}")


def confirmation_params(order: Order) -> dict[str, Any]:
    """Template parameters for the confirmation email."""
    lines = [
        {
            "name": item.name,
            "units": item.quantity,
            "price": to_provider_amount(item.unit_price),
            "image_url": item.image or "",
        }
        for item in order.items
    ]
    orders_text = "\n".join(
        f"{line['name']} x{line['units']} - ${line['price']}" for line in lines
    )
    orders_html = "".join(
        "<tr>"
        f"<td>{html.escape(str(line['name']))}</td>"
        f"<td>{line['units']}</td>"
        f"<td>${line['price']}</td>"
        "</tr>"
        for line in lines
    )
    total = to_provider_amount(order.final_amount)
    return {
        "email": order.shipping.email,
        "name": order.shipping.full_name,
        "order_id": order.provider_order_id or order.id,
        "orders": lines,
        "orders_text": orders_text,
        "orders_html": orders_html,
        "shipping_address": format_address_line(order.shipping),
        "cost": {"shipping": "0.00", "tax": "0.00", "total": total},
        "cost_total": total,
        "cost_shipping": "0.00",
        "cost_tax": "0.00",
        "discount_amount": to_provider_amount(order.discount_amount),
    }
