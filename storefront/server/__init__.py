"""
Order server — `POST /api/create-order` and friends.
"""

from storefront.server._app import create_app, create_app_from_settings
from storefront.server._schemas import CreateOrderIn, CreateOrderOut, OrderOut, CouponOut, ErrorOut


__all__ = (
    "create_app",
    "create_app_from_settings",
    "CreateOrderIn",
    "CreateOrderOut",
    "OrderOut",
    "CouponOut",
    "ErrorOut",
)
