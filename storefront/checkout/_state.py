"""Checkout states, failures and the context value carried between them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, auto

from storefront.cart import LineItem
from storefront.coupon import Coupon, CouponRejection
from storefront.orders import Order
from storefront.payment import PaymentCapture
from storefront.pricing import Totals
from storefront.shipping import FieldKey, ShippingAddress


class CheckoutState(Enum):
    IDLE = auto()
    AWAITING_PAYMENT = auto()
    PAYMENT_CAPTURED = auto()
    AWAITING_MISSING_FIELDS = auto()
    PERSISTING = auto()
    COMPLETED = auto()
    FAILED = auto()


class FailureKind(Enum):
    EMPTY_CART = auto()
    PROVIDER_UNAVAILABLE = auto()
    PAYMENT_DECLINED = auto()
    PAYMENT_CANCELLED = auto()
    CAPTURE_FAILED = auto()
    ORDER_SAVE_FAILED = auto()


@dataclass(frozen=True, slots=True)
class CheckoutFailure:
    kind: FailureKind
    message: str
    provider_order_id: str | None = None
    retryable: bool = True


@dataclass(frozen=True, slots=True)
class ValidationError:
    """Shipping fields still missing after capture."""
    missing: tuple[FieldKey, ...]

    @property
    def message(self) -> str:
        return "Please complete: " + ", ".join(key.value for key in self.missing)


class CheckoutError(Exception):
    """Raised by widget-facing helpers that must throw."""

    def __init__(self, failure: CheckoutFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure


@dataclass(frozen=True, slots=True)
class CheckoutContext:
    """
    Everything one checkout knows. Replaced, never mutated, on each transition.
    """
    state: CheckoutState = CheckoutState.IDLE
    cart_snapshot: tuple[LineItem, ...] = ()
    shipping: ShippingAddress = field(default_factory=ShippingAddress)
    applied_coupon: Coupon | None = None
    totals: Totals = field(default_factory=Totals.zero)
    provider_order_id: str | None = None
    captured_payment: PaymentCapture | None = None
    missing_fields: tuple[FieldKey, ...] = ()
    validation: ValidationError | None = None
    coupon_rejection: CouponRejection | None = None
    failure: CheckoutFailure | None = None
    order: Order | None = None
    email_sent: bool | None = None

    @property
    def before_capture(self) -> bool:
        match self.state:
            case CheckoutState.IDLE | CheckoutState.AWAITING_PAYMENT:
                return True
            case CheckoutState.FAILED:
                return self.failure is not None and self.failure.retryable
            case _:
                return False

    def fail(self, kind: FailureKind, message: str, *, retryable: bool = True) -> CheckoutContext:
        failure = CheckoutFailure(kind, message, self.provider_order_id, retryable)
        return replace(self, state=CheckoutState.FAILED, failure=failure)
