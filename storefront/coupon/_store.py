"""Coupon lookup backends."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Any, Protocol

import httpx

from storefront._types import to_money
from storefront.coupon._types import Coupon, normalize_code


class CouponStore(Protocol):
    async def find_active(self, code: str) -> Coupon | None: ...


class MemoryCouponStore:
    def __init__(self, coupons: Iterable[Coupon] = ()) -> None:
        self._coupons = {coupon.id: coupon for coupon in coupons}

    async def find_active(self, code: str) -> Coupon | None:
        wanted = normalize_code(code)
        for coupon in self._coupons.values():
            if coupon.active and normalize_code(coupon.code) == wanted:
                return coupon
        return None

    def get(self, coupon_id: str) -> Coupon | None:
        return self._coupons.get(coupon_id)


class HttpCouponStore:
    """
    Reads coupons from the order server (`GET {base}/{code}`).

    Read-only: the order server counts coupon usage when it stores an
    order carrying `couponId`.
    """

    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def find_active(self, code: str) -> Coupon | None:
        response = await self._client.get(f"{self._base_url}/{normalize_code(code)}")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return coupon_from_wire(response.json())


def coupon_from_wire(data: dict[str, Any]) -> Coupon:
    percent = data.get("discountPercent")
    return Coupon(
        id=str(data["id"]),
        code=str(data["code"]),
        discount_percent=to_money(percent) if percent is not None else Decimal("NaN"),
        active=bool(data.get("active", True)),
        usage_count=int(data.get("usageCount", 0)),
    )
