"""
PayPal Orders v2 over httpx.

    provider = PayPalProvider(client, client_id=..., client_secret=...)
    order_id = await provider.create_order("19.99", "USD", "Order - 2 items")
    capture = await provider.capture_order(order_id)
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

import httpx
import structlog

from storefront._types import to_money
from storefront.payment._types import CaptureStatus, PaymentCapture, ProviderError
from storefront.shipping import ShippingAddress

SANDBOX_URL = "https://api-m.sandbox.paypal.com"

# tokens are renewed this long before PayPal's stated expiry
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)

log = structlog.get_logger()


class PayPalProvider:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        client_id: str,
        client_secret: str,
        base_url: str = SANDBOX_URL,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._base_url = base_url.rstrip("/")
        self._now = now
        self._token: str | None = None
        self._token_expires_at: datetime | None = None

    async def prepare(self) -> None:
        if not self._client_id:
            raise ProviderError("PayPal client id is not configured")
        await self._access_token()

    async def create_order(self, amount: str, currency: str, description: str) -> str:
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "amount": {"currency_code": currency, "value": amount},
                    "description": description,
                }
            ],
        }
        data = await self._post("/v2/checkout/orders", body)
        order_id = data.get("id")
        if not order_id:
            raise ProviderError("PayPal returned no order id", payload=data)
        return str(order_id)

    async def capture_order(self, provider_order_id: str) -> PaymentCapture:
        data = await self._post(
            f"/v2/checkout/orders/{provider_order_id}/capture",
            {},
            # same id on a retried request makes PayPal replay the first capture
            request_id=f"capture-{provider_order_id}",
        )
        return parse_capture(data)

    async def _access_token(self) -> str:
        if self._token is not None:
            if self._token_expires_at is None or self._now() < self._token_expires_at:
                return self._token
            log.info("paypal.token_expired")
            self._token = None
        try:
            response = await self._client.post(
                f"{self._base_url}/v1/oauth2/token",
                data={"grant_type": "client_credentials"},
                auth=(self._client_id, self._client_secret),
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"PayPal unreachable: {e}") from e
        if response.is_error:
            raise ProviderError("PayPal authentication failed", status=response.status_code, payload=_json(response))
        data = response.json()
        expires_in = data.get("expires_in")
        self._token = str(data["access_token"])
        self._token_expires_at = (
            self._now() + timedelta(seconds=float(expires_in)) - TOKEN_EXPIRY_MARGIN
            if expires_in is not None
            else None
        )
        return self._token

    async def _post(
        self,
        path: str,
        body: Mapping[str, Any],
        *,
        request_id: str | None = None,
    ) -> dict[str, Any]:
        headers = {"Authorization": f"Bearer {await self._access_token()}"}
        if request_id is not None:
            headers["PayPal-Request-Id"] = request_id
        try:
            response = await self._client.post(f"{self._base_url}{path}", json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderError(f"PayPal unreachable: {e}") from e

        payload = _json(response)
        if response.status_code == 401:
            # revoked before its expiry; the next call fetches a new one
            self._token = None
        if response.is_error:
            message = str(payload.get("message") or payload.get("name") or f"PayPal error {response.status_code}")
            log.warning("paypal.request_failed", path=path, status=response.status_code, name=payload.get("name"))
            raise ProviderError(message, status=response.status_code, payload=payload)
        return payload


def parse_capture(data: Mapping[str, Any]) -> PaymentCapture:
    """Map a PayPal capture response to PaymentCapture."""
    units = data.get("purchase_units") or [{}]
    unit = units[0]
    captures = (unit.get("payments") or {}).get("captures") or [{}]
    capture = captures[0]

    raw_status = str(capture.get("status") or data.get("status") or "").upper()
    match raw_status:
        case "COMPLETED":
            status = CaptureStatus.COMPLETED
        case "PENDING":
            status = CaptureStatus.PENDING
        case _:
            status = CaptureStatus.FAILED

    amount = capture.get("amount") or unit.get("amount") or {}
    return PaymentCapture(
        provider_order_id=str(data.get("id", "")),
        transaction_id=str(capture.get("id") or data.get("id", "")),
        payer_shipping=_payer_shipping(data.get("payer") or {}, unit.get("shipping") or {}),
        captured_amount=to_money(amount.get("value")),
        status=status,
        currency=str(amount.get("currency_code") or "USD"),
    )


def _payer_shipping(payer: Mapping[str, Any], shipping: Mapping[str, Any]) -> ShippingAddress:
    payer_name = payer.get("name") or {}
    full_name = (shipping.get("name") or {}).get("full_name") or " ".join(
        part for part in (payer_name.get("given_name"), payer_name.get("surname")) if part
    )
    phone = ((payer.get("phone") or {}).get("phone_number") or {}).get("national_number") or ""
    address = shipping.get("address") or {}
    street = ", ".join(
        line for line in (address.get("address_line_1"), address.get("address_line_2")) if line
    )
    return ShippingAddress(
        full_name=full_name,
        email=payer.get("email_address") or "",
        phone=phone,
        address=street,
        city=address.get("admin_area_2") or "",
        zip_code=address.get("postal_code") or "",
        country=address.get("country_code") or "",
    )


def _json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {"raw": response.text}
    return data if isinstance(data, dict) else {"raw": data}
