"""
Coupon resolution.

Lookup failures are converted at the store seam; the caller gets a
Result and never an exception.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from combinators import lift as L
from kungfu import Error, Ok, Result

from storefront.coupon._store import CouponStore
from storefront.coupon._types import Coupon, CouponRejection, RejectionKind, normalize_code

log = structlog.get_logger()


async def resolve(code: str, store: CouponStore) -> Result[Coupon, CouponRejection]:
    normalized = normalize_code(code)
    if not normalized:
        return Error(CouponRejection(RejectionKind.INVALID_CODE, "Enter a promo code"))

    def unavailable(e: Exception) -> CouponRejection:
        log.warning("coupon.lookup_failed", code=normalized, error=str(e))
        return CouponRejection(
            RejectionKind.SERVICE_UNAVAILABLE,
            "Could not check the promo code right now. Please try again.",
            normalized,
        )

    found = await L.catching_async(lambda: store.find_active(normalized), on_error=unavailable)

    match found:
        case Error(rejection):
            return Error(rejection)
        case Ok(None):
            return Error(CouponRejection(RejectionKind.INVALID_CODE, "Invalid promo code", normalized))
        case Ok(coupon) if not coupon.active or normalize_code(coupon.code) != normalized:
            return Error(CouponRejection(RejectionKind.INVALID_CODE, "Invalid promo code", normalized))
        case Ok(coupon) if not _valid_percent(coupon.discount_percent):
            log.error("coupon.malformed", coupon_id=coupon.id, discount_percent=str(coupon.discount_percent))
            return Error(CouponRejection(RejectionKind.MALFORMED_CONFIG, "This promo code cannot be used", normalized))
        case Ok(coupon):
            log.info("coupon.resolved", coupon_id=coupon.id, code=normalized)
            return Ok(coupon)


def _valid_percent(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, Decimal | int):
        return False
    percent = Decimal(value)
    return percent.is_finite() and 0 <= percent <= 100
