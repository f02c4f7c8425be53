"""
Shipping merge — user input first, payer details from the provider second.
"""

from __future__ import annotations

from storefront.shipping._types import FieldKey, ShippingAddress, is_valid_email


def merge(user: ShippingAddress, provider: ShippingAddress) -> ShippingAddress:
    """
    Field by field: trimmed user value if non-empty, else trimmed provider
    value, else empty. `merge(merge(u, p), p) == merge(u, p)`.
    """
    values = {
        key.attr: user.get(key).strip() or provider.get(key).strip()
        for key in FieldKey
    }
    return ShippingAddress(**values)


def compute_missing(address: ShippingAddress) -> tuple[FieldKey, ...]:
    """Required keys that are empty, in canonical order. A malformed email counts as missing."""
    missing: list[FieldKey] = []
    for key in FieldKey:
        value = address.get(key).strip()
        if not value or (key is FieldKey.EMAIL and not is_valid_email(value)):
            missing.append(key)
    return tuple(missing)
