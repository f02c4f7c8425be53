"""
Core types for storefront.

Money is always `decimal.Decimal`; these helpers coerce loosely typed
catalog input and round amounts that leave the core.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# ═══════════════════════════════════════════════════════════════════════════════
# Money
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Currency amount in major units (dollars, not cents)."""

ZERO = Decimal("0")
CENT = Decimal("0.01")

_NON_NUMERIC = re.compile(r"[^0-9.\-]")


def to_money(value: object) -> Money:
    """
    Coerce a price-like value to Decimal.

    Strings may carry currency symbols or separators ("$1,299.00").
    Anything unparseable or non-finite becomes zero.
    """
    match value:
        case Decimal():
            return value if value.is_finite() else ZERO
        case bool() | None:
            return ZERO
        case int():
            return Decimal(value)
        case float():
            return Decimal(str(value)) if math.isfinite(value) else ZERO

    text = _NON_NUMERIC.sub("", str(value))
    try:
        parsed = Decimal(text)
    except InvalidOperation:
        return ZERO
    return parsed if parsed.is_finite() else ZERO


def round_cents(amount: Money) -> Money:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Money) -> int:
    """Whole cents, for integer storage columns."""
    return int(round_cents(amount) * 100)


def from_cents(cents: int) -> Money:
    return round_cents(Decimal(cents) / 100)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    "Money",
    "ZERO",
    "CENT",
    "to_money",
    "round_cents",
    "to_cents",
    "from_cents",
)
