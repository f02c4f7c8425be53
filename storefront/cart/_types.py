"""Line items and normalisation of loosely typed catalog records."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any

from storefront._types import ZERO, Money, to_money


def clamp_quantity(value: object) -> int:
    """Non-numeric, non-finite, zero or negative → 1; fractions round down."""
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return 1
    if not math.isfinite(number) or number < 1:
        return 1
    return math.floor(number)


@dataclass(frozen=True, slots=True)
class Variation:
    name: str
    sku: str | None = None
    discount_pct: Decimal | None = None


@dataclass(frozen=True, slots=True)
class LineItem:
    id: str
    name: str
    unit_price: Money
    quantity: int = 1
    selected_size: str | None = None
    selected_variation: Variation | None = None
    image: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "quantity", clamp_quantity(self.quantity))
        object.__setattr__(self, "unit_price", max(ZERO, to_money(self.unit_price)))

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    def with_quantity(self, quantity: object) -> LineItem:
        return replace(self, quantity=clamp_quantity(quantity))

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form; `normalize_item` reads it back."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "price": str(self.unit_price),
            "quantity": self.quantity,
        }
        if self.selected_size:
            data["selectedSize"] = self.selected_size
        if self.selected_variation is not None:
            variation = self.selected_variation
            data["selectedVariation"] = {
                "name": variation.name,
                "sku": variation.sku,
                "discountPct": None if variation.discount_pct is None else str(variation.discount_pct),
            }
        if self.image:
            data["image"] = self.image
        return data


def normalize_item(raw: object) -> LineItem | None:
    """
    Build a LineItem from a catalog or storage record.

    Accepts `$id`/`id`/`sku`, a flat `price` or a nested `pricing.price`,
    `quantity` or `qty`, and camelCase or snake_case option keys. Records without an id are
    dropped (None).
    """
    if isinstance(raw, LineItem):
        return raw
    if not isinstance(raw, Mapping):
        return None

    item_id = raw.get("$id") or raw.get("id") or raw.get("sku")
    if not item_id:
        return None

    price = raw.get("price", raw.get("unit_price"))
    if price is None:
        pricing = raw.get("pricing")
        if isinstance(pricing, Mapping):
            price = pricing.get("price", pricing.get("amount"))

    quantity = raw.get("quantity")
    if quantity is None:
        quantity = raw.get("qty")

    return LineItem(
        id=str(item_id),
        name=str(raw.get("name") or raw.get("title") or ""),
        unit_price=to_money(price),
        quantity=clamp_quantity(quantity),
        selected_size=_optional_text(raw.get("selectedSize", raw.get("selected_size"))),
        selected_variation=_variation(raw.get("selectedVariation", raw.get("selected_variation"))),
        image=_optional_text(raw.get("image") or raw.get("imageUrl")),
    )


def subtotal(items: Iterable[LineItem]) -> Money:
    return sum((item.line_total for item in items), ZERO)


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _variation(raw: object) -> Variation | None:
    if not isinstance(raw, Mapping) or not raw.get("name"):
        return None
    pct = raw.get("discountPct", raw.get("discount_pct"))
    return Variation(
        name=str(raw["name"]),
        sku=_optional_text(raw.get("sku")),
        discount_pct=None if pct is None else to_money(pct),
    )
