"""
Cart — line items, normalisation, durable snapshot.

    from storefront import cart as K

    cart = K.CartSnapshot(K.JsonFileCartStorage(path))
"""

from storefront.cart._types import (
    LineItem,
    Variation,
    clamp_quantity,
    normalize_item,
    subtotal,
)
from storefront.cart._storage import CartStorage, MemoryCartStorage, JsonFileCartStorage
from storefront.cart._cart import CartSnapshot


__all__ = (
    "LineItem",
    "Variation",
    "clamp_quantity",
    "normalize_item",
    "subtotal",
    "CartStorage",
    "MemoryCartStorage",
    "JsonFileCartStorage",
    "CartSnapshot",
)
