"""
Checkout — the state machine from cart to stored order.

    from storefront import checkout as CO

    orchestrator = CO.build_orchestrator(settings, client)
    ctx = await orchestrator.dispatch(CO.Begin())
"""

from storefront.checkout._state import (
    CheckoutState,
    FailureKind,
    CheckoutFailure,
    ValidationError,
    CheckoutError,
    CheckoutContext,
)
from storefront.checkout._events import (
    Begin,
    UpdateShipping,
    ApplyCoupon,
    RemoveCoupon,
    RequestProviderOrder,
    PaymentApproved,
    PaymentCancelled,
    PaymentErrored,
    SupplyMissingFields,
    Abandon,
    CheckoutEvent,
)
from storefront.checkout._assemble import assemble_order, assemble_recovery
from storefront.checkout._orchestrator import CheckoutOrchestrator
from storefront.checkout._wiring import build_orchestrator


__all__ = (
    "CheckoutState",
    "FailureKind",
    "CheckoutFailure",
    "ValidationError",
    "CheckoutError",
    "CheckoutContext",
    "Begin",
    "UpdateShipping",
    "ApplyCoupon",
    "RemoveCoupon",
    "RequestProviderOrder",
    "PaymentApproved",
    "PaymentCancelled",
    "PaymentErrored",
    "SupplyMissingFields",
    "Abandon",
    "CheckoutEvent",
    "assemble_order",
    "assemble_recovery",
    "CheckoutOrchestrator",
    "build_orchestrator",
)
