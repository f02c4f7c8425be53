"""
CartSnapshot — the live cart, persisted on every change.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from storefront._types import Money
from storefront.cart._storage import CartStorage, MemoryCartStorage
from storefront.cart._types import LineItem, clamp_quantity, normalize_item, subtotal

log = structlog.get_logger()


class CartSnapshot:
    """
    Ordered line items keyed by product id.

    Adding an id that is already present sums the quantities. Every
    mutation is written through to storage.

    Example:
        cart = CartSnapshot(JsonFileCartStorage(".storefront/cart.json"))
        cart.add({"$id": "p1", "name": "Mug", "price": "12.50"})
        cart.items  # frozen tuple, safe to hand to checkout
    """

    __slots__ = ("_storage", "_items")

    def __init__(self, storage: CartStorage | None = None) -> None:
        self._storage = storage if storage is not None else MemoryCartStorage()
        self._items: list[LineItem] = []
        for raw in self._storage.load():
            item = normalize_item(raw)
            if item is not None:
                self._items.append(item)

    @property
    def items(self) -> tuple[LineItem, ...]:
        return tuple(self._items)

    @property
    def is_empty(self) -> bool:
        return not self._items

    def subtotal(self) -> Money:
        return subtotal(self._items)

    def count(self) -> int:
        return sum(item.quantity for item in self._items)

    def add(self, raw: LineItem | Mapping[str, Any]) -> LineItem | None:
        item = normalize_item(raw)
        if item is None:
            log.warning("cart.add_rejected", reason="missing id")
            return None

        index = self._index(item.id)
        if index is None:
            self._items.append(item)
        else:
            existing = self._items[index]
            item = item.with_quantity(existing.quantity + item.quantity)
            self._items[index] = item
        self._persist()
        return item

    def set_quantity(self, item_id: str, quantity: object) -> bool:
        index = self._index(item_id)
        if index is None:
            return False
        self._items[index] = self._items[index].with_quantity(clamp_quantity(quantity))
        self._persist()
        return True

    def update_quantity(self, item_id: str, delta: int) -> bool:
        index = self._index(item_id)
        if index is None:
            return False
        return self.set_quantity(item_id, self._items[index].quantity + delta)

    def remove(self, item_id: str) -> bool:
        index = self._index(item_id)
        if index is None:
            return False
        del self._items[index]
        self._persist()
        return True

    def replace(self, items: Iterable[LineItem | Mapping[str, Any]]) -> None:
        self._items = [item for item in map(normalize_item, items) if item is not None]
        self._persist()

    def clear(self) -> None:
        self._items = []
        self._persist()

    def _index(self, item_id: str) -> int | None:
        for i, item in enumerate(self._items):
            if item.id == item_id:
                return i
        return None

    def _persist(self) -> None:
        self._storage.save([item.to_dict() for item in self._items])
