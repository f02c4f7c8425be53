"""Totals from a subtotal and an optional percentage coupon."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from storefront._types import ZERO, Money, round_cents, to_money
from storefront.coupon import Coupon

_HUNDRED = Decimal(100)


@dataclass(frozen=True, slots=True)
class Totals:
    subtotal: Money
    discount_percent: Decimal
    discount_amount: Money
    final_amount: Money

    @classmethod
    def zero(cls) -> Totals:
        return cls(ZERO, ZERO, ZERO, ZERO)


def clamp_percent(value: object) -> Decimal:
    return min(_HUNDRED, max(ZERO, to_money(value)))


def compute_totals(subtotal: object, coupon: Coupon | None = None) -> Totals:
    """
    discount = round_half_up(subtotal × pct / 100, cents), final = subtotal − discount.

    Negative subtotals count as zero; the percentage is clamped to [0, 100],
    so final_amount is never negative and never exceeds subtotal.
    """
    base = max(ZERO, to_money(subtotal))
    percent = clamp_percent(coupon.discount_percent) if coupon is not None else ZERO
    discount = min(base, round_cents(base * percent / _HUNDRED))
    return Totals(
        subtotal=base,
        discount_percent=percent,
        discount_amount=discount,
        final_amount=base - discount,
    )


def to_provider_amount(amount: Money) -> str:
    """Fixed two-decimal string, as payment APIs expect."""
    return f"{round_cents(max(ZERO, amount)):.2f}"
