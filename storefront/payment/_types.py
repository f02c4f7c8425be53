"""Payment capture value, provider protocol, payment errors."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from storefront._types import Money
from storefront.shipping import ShippingAddress


# ═══════════════════════════════════════════════════════════════════════════════
# Capture
# ═══════════════════════════════════════════════════════════════════════════════

class CaptureStatus(Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class PaymentCapture:
    provider_order_id: str
    transaction_id: str
    payer_shipping: ShippingAddress
    captured_amount: Money
    status: CaptureStatus
    currency: str = "USD"


# ═══════════════════════════════════════════════════════════════════════════════
# Provider
# ═══════════════════════════════════════════════════════════════════════════════

class ProviderError(Exception):
    """Raised by provider adapters; converted to a Result in PaymentSession."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        payload: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload


class PaymentProvider(Protocol):
    async def prepare(self) -> None: ...
    async def create_order(self, amount: str, currency: str, description: str) -> str: ...
    async def capture_order(self, provider_order_id: str) -> PaymentCapture: ...


# ═══════════════════════════════════════════════════════════════════════════════
# Errors
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True, slots=True)
class EmptyCartError:
    message: str = "Your cart is empty"


@dataclass(frozen=True, slots=True)
class ProviderUnavailable:
    message: str


@dataclass(frozen=True, slots=True)
class CaptureFailed:
    """Provider declined or errored; no funds moved."""
    provider_order_id: str | None
    message: str
    payload: Mapping[str, Any] | None = None
    status: int | None = None


@dataclass(frozen=True, slots=True)
class DuplicateCapture:
    provider_order_id: str


type PaymentError = EmptyCartError | ProviderUnavailable | CaptureFailed | DuplicateCapture
