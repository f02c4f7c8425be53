"""
Pricing — subtotal, coupon discount, final amount.

    from storefront import pricing as P

    totals = P.compute_totals(cart.subtotal(), coupon)
"""

from storefront.pricing._totals import Totals, clamp_percent, compute_totals, to_provider_amount


__all__ = ("Totals", "clamp_percent", "compute_totals", "to_provider_amount")
