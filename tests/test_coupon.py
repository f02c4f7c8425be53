"""Tests for coupon resolution."""

import asyncio
from decimal import Decimal

import httpx
import pytest
from kungfu import Error, Ok

from storefront.coupon import Coupon, HttpCouponStore, MemoryCouponStore, RejectionKind, resolve

from _fakes import SAVE10, BrokenCouponStore


def _resolve(code, store):
    return asyncio.run(resolve(code, store))


class TestResolve:
    def test_code_is_trimmed_and_case_insensitive(self):
        match _resolve("  save10 ", MemoryCouponStore([SAVE10])):
            case Ok(coupon):
                assert coupon.id == "c1"
            case Error(rejection):
                pytest.fail(f"unexpected rejection {rejection}")

    @pytest.mark.parametrize("code", ["", "   ", "NOPE"])
    def test_unknown_or_empty_is_invalid(self, code):
        match _resolve(code, MemoryCouponStore([SAVE10])):
            case Error(rejection):
                assert rejection.kind is RejectionKind.INVALID_CODE
                assert not rejection.retryable
            case Ok(_):
                pytest.fail("expected rejection")

    def test_inactive_coupon_is_invalid(self):
        inactive = Coupon(id="c2", code="OLD", discount_percent=Decimal(5), active=False)
        match _resolve("old", MemoryCouponStore([inactive])):
            case Error(rejection):
                assert rejection.kind is RejectionKind.INVALID_CODE
            case Ok(_):
                pytest.fail("expected rejection")

    @pytest.mark.parametrize("percent", [Decimal(150), Decimal(-1), Decimal("NaN")])
    def test_out_of_range_percent_is_malformed(self, percent):
        broken = Coupon(id="c3", code="BAD", discount_percent=percent)
        match _resolve("BAD", MemoryCouponStore([broken])):
            case Error(rejection):
                assert rejection.kind is RejectionKind.MALFORMED_CONFIG
            case Ok(_):
                pytest.fail("expected rejection")

    def test_store_failure_is_service_unavailable(self):
        match _resolve("SAVE10", BrokenCouponStore()):
            case Error(rejection):
                assert rejection.kind is RejectionKind.SERVICE_UNAVAILABLE
                assert rejection.retryable
            case Ok(_):
                pytest.fail("expected rejection")


def test_http_store_only_reads():
    methods = []

    def handler(request):
        methods.append(request.method)
        if request.url.path == "/api/coupons/SAVE10":
            return httpx.Response(
                200,
                json={"id": "c1", "code": "SAVE10", "discountPercent": 10, "active": True, "usageCount": 4},
            )
        return httpx.Response(404, json={"error": "Coupon not found"})

    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            store = HttpCouponStore(client, "https://shop.test/api/coupons/")
            return await resolve(" save10 ", store), await store.find_active("NOPE")

    found, missing = asyncio.run(scenario())
    match found:
        case Ok(coupon):
            assert coupon.discount_percent == Decimal(10)
            assert coupon.usage_count == 4
        case Error(rejection):
            pytest.fail(f"unexpected {rejection}")
    assert missing is None
    assert methods == ["GET", "GET"]
