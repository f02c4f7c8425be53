"""
Assembly — order and recovery record from a captured checkout context.

    order = await assemble_order(context)
    record = await assemble_recovery(context, failed)
"""

from storefront import graph as G
from storefront.cart import subtotal
from storefront.checkout._state import CheckoutContext
from storefront.orders import Order, OrderSaveFailed, RecoveryRecord
from storefront.payment import PaymentCapture
from storefront.pricing import Totals, compute_totals


@G.node
class ContextNode:
    """Entry point: wraps the checkout context."""

    def __init__(self, data: CheckoutContext) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, context: CheckoutContext) -> "ContextNode":
        return cls(context)


@G.node
class TotalsNode:
    """Totals recomputed from the frozen snapshot, never from the live cart."""

    def __init__(self, data: Totals) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, ctx: ContextNode) -> "TotalsNode":
        return cls(compute_totals(subtotal(ctx.data.cart_snapshot), ctx.data.applied_coupon))


@G.node
class CaptureNode:
    def __init__(self, data: PaymentCapture) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, ctx: ContextNode) -> "CaptureNode":
        capture = ctx.data.captured_payment
        if capture is None:
            raise ValueError("order assembly needs a captured payment")
        return cls(capture)


@G.node
class OrderDraftNode:
    """Unsaved order (empty id)."""

    def __init__(self, data: Order) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, ctx: ContextNode, totals: TotalsNode, capture: CaptureNode) -> "OrderDraftNode":
        coupon = ctx.data.applied_coupon
        return cls(
            Order(
                id="",
                items=ctx.data.cart_snapshot,
                subtotal=totals.data.subtotal,
                discount_amount=totals.data.discount_amount,
                final_amount=totals.data.final_amount,
                shipping=ctx.data.shipping,
                provider_order_id=capture.data.provider_order_id or ctx.data.provider_order_id or "",
                transaction_id=capture.data.transaction_id,
                coupon_id=coupon.id if coupon else None,
                coupon_code=coupon.code if coupon else None,
            )
        )


@G.node
class RecoveryNode:
    def __init__(self, data: RecoveryRecord) -> None:
        self.data = data

    @classmethod
    def __compose__(cls, draft: OrderDraftNode, failed: OrderSaveFailed) -> "RecoveryNode":
        order = draft.data
        return cls(
            RecoveryRecord(
                provider_order_id=order.provider_order_id,
                transaction_id=order.transaction_id,
                amount=order.final_amount,
                items=order.items,
                shipping=order.shipping,
                reason=failed.message,
                attempts=failed.attempts,
                coupon_code=order.coupon_code,
            )
        )


async def assemble_order(context: CheckoutContext) -> Order:
    return (await G.compose(OrderDraftNode, context)).data


async def assemble_recovery(context: CheckoutContext, failed: OrderSaveFailed) -> RecoveryRecord:
    return (await G.compose(RecoveryNode, context, failed)).data


__all__ = (
    "ContextNode",
    "TotalsNode",
    "CaptureNode",
    "OrderDraftNode",
    "RecoveryNode",
    "assemble_order",
    "assemble_recovery",
)
