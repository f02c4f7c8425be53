"""Coupon value and rejection reasons."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum, auto


@dataclass(frozen=True, slots=True)
class Coupon:
    id: str
    code: str
    discount_percent: Decimal
    active: bool = True
    usage_count: int = 0


class RejectionKind(Enum):
    INVALID_CODE = auto()
    MALFORMED_CONFIG = auto()
    SERVICE_UNAVAILABLE = auto()
    ALREADY_APPLIED = auto()


@dataclass(frozen=True, slots=True)
class CouponRejection:
    kind: RejectionKind
    message: str
    code: str = ""

    @property
    def retryable(self) -> bool:
        return self.kind is RejectionKind.SERVICE_UNAVAILABLE


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()
