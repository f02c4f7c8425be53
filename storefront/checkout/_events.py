"""Events accepted by `CheckoutOrchestrator.dispatch`."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Begin:
    pass


@dataclass(frozen=True, slots=True)
class UpdateShipping:
    fields: Mapping[str, str]


@dataclass(frozen=True, slots=True)
class ApplyCoupon:
    code: str


@dataclass(frozen=True, slots=True)
class RemoveCoupon:
    pass


@dataclass(frozen=True, slots=True)
class RequestProviderOrder:
    """Widget `createOrder`."""


@dataclass(frozen=True, slots=True)
class PaymentApproved:
    """Widget `onApprove`."""
    provider_order_id: str


@dataclass(frozen=True, slots=True)
class PaymentCancelled:
    """Widget `onCancel`."""


@dataclass(frozen=True, slots=True)
class PaymentErrored:
    """Widget `onError`."""
    message: str
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class SupplyMissingFields:
    fields: Mapping[str, str]
    allow_incomplete: bool = False


@dataclass(frozen=True, slots=True)
class Abandon:
    pass


type CheckoutEvent = (
    Begin
    | UpdateShipping
    | ApplyCoupon
    | RemoveCoupon
    | RequestProviderOrder
    | PaymentApproved
    | PaymentCancelled
    | PaymentErrored
    | SupplyMissingFields
    | Abandon
)
