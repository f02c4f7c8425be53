"""
Payment — provider protocol, PayPal adapter, per-checkout session.

    from storefront import payment as PM

    session = PM.PaymentSession(PM.PayPalProvider(client, client_id=..., client_secret=...))
    match await session.capture(order_id):
        case Ok(capture): ...
        case Error(PM.DuplicateCapture()): ...  # second approval, ignored
"""

from storefront.payment._types import (
    CaptureStatus,
    PaymentCapture,
    PaymentProvider,
    ProviderError,
    EmptyCartError,
    ProviderUnavailable,
    CaptureFailed,
    DuplicateCapture,
    PaymentError,
)
from storefront.payment._session import PaymentSession
from storefront.payment._paypal import PayPalProvider, parse_capture


__all__ = (
    "CaptureStatus",
    "PaymentCapture",
    "PaymentProvider",
    "ProviderError",
    "EmptyCartError",
    "ProviderUnavailable",
    "CaptureFailed",
    "DuplicateCapture",
    "PaymentError",
    "PaymentSession",
    "PayPalProvider",
    "parse_capture",
)
