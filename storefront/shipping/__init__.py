"""
Shipping — address value, provider merge, completeness check.

    from storefront import shipping as S

    merged = S.merge(user_input, capture.payer_shipping)
    missing = S.compute_missing(merged)
"""

from storefront.shipping._types import (
    FieldKey,
    ShippingAddress,
    is_valid_email,
    format_address_line,
)
from storefront.shipping._merge import merge, compute_missing

REQUIRED_FIELDS = tuple(FieldKey)


__all__ = (
    "FieldKey",
    "ShippingAddress",
    "REQUIRED_FIELDS",
    "is_valid_email",
    "format_address_line",
    "merge",
    "compute_missing",
)
