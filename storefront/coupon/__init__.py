"""
Coupons — lookup and validation of promo codes.

    from storefront import coupon as CP

    match await CP.resolve("save10", store):
        case Ok(coupon): ...
        case Error(rejection): rejection.kind
"""

from storefront.coupon._types import Coupon, CouponRejection, RejectionKind, normalize_code
from storefront.coupon._store import CouponStore, MemoryCouponStore, HttpCouponStore, coupon_from_wire
from storefront.coupon._resolve import resolve
from storefront.coupon._sqlalchemy import SQLAlchemyCouponStore


__all__ = (
    "Coupon",
    "CouponRejection",
    "RejectionKind",
    "normalize_code",
    "CouponStore",
    "MemoryCouponStore",
    "HttpCouponStore",
    "coupon_from_wire",
    "SQLAlchemyCouponStore",
    "resolve",
)
