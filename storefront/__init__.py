"""
storefront — checkout orchestration for a small online shop.

    from storefront import cart as K        # Cart snapshot, line items
    from storefront import coupon as CP     # Promo codes
    from storefront import pricing as P     # Totals
    from storefront import payment as PM    # PayPal session, capture latch
    from storefront import shipping as S    # Address merge, missing fields
    from storefront import orders as O      # Persistence, retry, recovery log
    from storefront import checkout as CO   # State machine
    from storefront import notify as N      # Email, analytics

The order server lives in `storefront.server` (FastAPI).
"""

from storefront import shipping
from storefront import cart
from storefront import coupon
from storefront import pricing
from storefront import payment
from storefront import orders
from storefront import notify
from storefront import checkout

__version__ = "0.1.0"

__all__ = (
    "shipping",
    "cart",
    "coupon",
    "pricing",
    "payment",
    "orders",
    "notify",
    "checkout",
)
