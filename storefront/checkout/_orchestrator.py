"""
CheckoutOrchestrator — the checkout state machine.

    orchestrator = build_orchestrator(settings, client)

    await orchestrator.dispatch(Begin())
    order_id = await orchestrator.create_provider_order()   # widget createOrder
    ctx = await orchestrator.dispatch(PaymentApproved(order_id))

    match ctx.state:
        case CheckoutState.COMPLETED: ctx.order.id
        case CheckoutState.AWAITING_MISSING_FIELDS: ctx.missing_fields
        case CheckoutState.FAILED: ctx.failure.message

Once a payment is captured the flow only moves forward: it ends in
COMPLETED or FAILED(ORDER_SAVE_FAILED) with a recovery record. While a
capture is in flight every pre-capture event is refused.

A provider order is bound to the totals it was created with. A coupon
change voids it, and approvals are only honoured for the current one.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import replace

import structlog
from combinators import lift as L
from kungfu import Error, Ok

from storefront.cart import CartSnapshot, subtotal
from storefront.checkout._assemble import assemble_order, assemble_recovery
from storefront.checkout._events import (
    Abandon,
    ApplyCoupon,
    Begin,
    CheckoutEvent,
    PaymentApproved,
    PaymentCancelled,
    PaymentErrored,
    RemoveCoupon,
    RequestProviderOrder,
    SupplyMissingFields,
    UpdateShipping,
)
from storefront.checkout._state import (
    CheckoutContext,
    CheckoutError,
    CheckoutFailure,
    CheckoutState,
    FailureKind,
    ValidationError,
)
from storefront.coupon import CouponRejection, CouponStore, RejectionKind, resolve
from storefront.notify import AnalyticsSink, EmailSender, confirmation_params, purchase_params
from storefront.orders import Order, OrderPersistence, OrderSaveFailed, RecoveryLog
from storefront.payment import (
    CaptureFailed,
    DuplicateCapture,
    EmptyCartError,
    PaymentProvider,
    PaymentSession,
)
from storefront.pricing import compute_totals
from storefront.shipping import compute_missing, merge

log = structlog.get_logger()


class CheckoutOrchestrator:
    def __init__(
        self,
        *,
        cart: CartSnapshot,
        coupons: CouponStore,
        provider: PaymentProvider,
        persistence: OrderPersistence,
        recovery: RecoveryLog,
        email: EmailSender | None = None,
        analytics: AnalyticsSink | None = None,
        currency: str = "USD",
        ready_timeout: float = 8.0,
        email_timeout: float = 10.0,
    ) -> None:
        self._cart = cart
        self._coupons = coupons
        self._provider = provider
        self._persistence = persistence
        self._recovery = recovery
        self._email = email
        self._analytics = analytics
        self._currency = currency
        self._ready_timeout = ready_timeout
        self._email_timeout = email_timeout

        self._context = CheckoutContext()
        self._session: PaymentSession | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self.soft_failures: list[str] = []

    @property
    def context(self) -> CheckoutContext:
        return self._context

    # ═══════════════════════════════════════════════════════════════════════════
    # Entry points
    # ═══════════════════════════════════════════════════════════════════════════

    async def dispatch(self, event: CheckoutEvent) -> CheckoutContext:
        before = self._context.state

        match event:
            case Begin():
                await self._begin()
            case UpdateShipping(fields=fields):
                self._update_shipping(fields)
            case ApplyCoupon(code=code):
                await self._apply_coupon(code)
            case RemoveCoupon():
                self._remove_coupon()
            case RequestProviderOrder():
                await self._request_provider_order()
            case PaymentApproved(provider_order_id=provider_order_id):
                await self._approve(provider_order_id)
            case PaymentCancelled():
                self._abort(FailureKind.PAYMENT_CANCELLED, "Payment was cancelled.")
            case PaymentErrored(message=message, payload=payload):
                log.warning("checkout.payment_errored", error=message, payload=dict(payload))
                self._abort(FailureKind.PAYMENT_DECLINED, "Payment failed. Please try again.")
            case SupplyMissingFields(fields=fields, allow_incomplete=allow_incomplete):
                await self._supply(fields, allow_incomplete)
            case Abandon():
                self._abandon()

        log.info(
            "checkout.dispatch",
            event=type(event).__name__,
            before=before.name,
            after=self._context.state.name,
        )
        return self._context

    async def create_provider_order(self) -> str:
        """Widget `createOrder`: the provider order id, or raise CheckoutError."""
        ctx = await self.dispatch(RequestProviderOrder())
        if ctx.state is CheckoutState.FAILED and ctx.failure is not None:
            raise CheckoutError(ctx.failure)
        if ctx.provider_order_id is None:
            raise CheckoutError(
                CheckoutFailure(FailureKind.PROVIDER_UNAVAILABLE, "No payment is open for this checkout. Please try again.")
            )
        return ctx.provider_order_id

    async def drain(self) -> None:
        """Wait for background side effects."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ═══════════════════════════════════════════════════════════════════════════
    # Before capture
    # ═══════════════════════════════════════════════════════════════════════════

    async def _begin(self) -> None:
        ctx = self._context
        if self._capturing:
            log.warning("checkout.begin_rejected", state=ctx.state.name, provider_order_id=ctx.provider_order_id)
            return
        if ctx.state is CheckoutState.AWAITING_PAYMENT:
            return
        if not ctx.before_capture and ctx.state is not CheckoutState.COMPLETED:
            log.warning("checkout.begin_rejected", state=ctx.state.name)
            return

        fresh = self._priced(
            CheckoutContext(shipping=ctx.shipping, applied_coupon=ctx.applied_coupon)
            if ctx.before_capture
            else CheckoutContext()
        )
        self._session = None
        if not fresh.cart_snapshot:
            self._enter(fresh.fail(FailureKind.EMPTY_CART, EmptyCartError().message))
            return

        session = PaymentSession(self._provider, currency=self._currency, ready_timeout=self._ready_timeout)
        match await session.ready():
            case Ok(_):
                self._session = session
                self._enter(replace(fresh, state=CheckoutState.AWAITING_PAYMENT))
            case Error(unavailable):
                self._enter(fresh.fail(FailureKind.PROVIDER_UNAVAILABLE, unavailable.message))

    def _update_shipping(self, fields: Mapping[str, str]) -> None:
        if self._locked("shipping_update"):
            return
        ctx = self._context
        self._enter(replace(ctx, shipping=ctx.shipping.updated(fields)))

    async def _apply_coupon(self, code: str) -> None:
        if self._locked("apply_coupon"):
            return
        if self._context.applied_coupon is not None:
            self._reject_second_coupon(code)
            return

        resolved = await resolve(code, self._coupons)
        # state may have moved on while the lookup ran
        if self._locked("apply_coupon"):
            return
        match resolved:
            case Ok(_) if self._context.applied_coupon is not None:
                self._reject_second_coupon(code)
            case Ok(coupon):
                applied = replace(self._context, applied_coupon=coupon, coupon_rejection=None)
                self._enter(self._repriced(applied))
            case Error(rejection):
                self._enter(replace(self._context, coupon_rejection=rejection))

    def _reject_second_coupon(self, code: str) -> None:
        rejection = CouponRejection(
            RejectionKind.ALREADY_APPLIED,
            "Only one promo code can be used per order",
            code,
        )
        self._enter(replace(self._context, coupon_rejection=rejection))

    def _remove_coupon(self) -> None:
        if self._locked("remove_coupon"):
            return
        ctx = self._context
        self._enter(self._repriced(replace(ctx, applied_coupon=None, coupon_rejection=None)))

    async def _request_provider_order(self) -> None:
        ctx = self._context
        if ctx.state is not CheckoutState.AWAITING_PAYMENT or self._session is None or self._capturing:
            log.warning("checkout.provider_order_ignored", state=ctx.state.name)
            return

        priced = self._priced(ctx)
        created = await self._session.create_order(priced.cart_snapshot, priced.totals)
        current = self._context
        if current.state is not CheckoutState.AWAITING_PAYMENT or current.applied_coupon != priced.applied_coupon:
            # abandoned, failed or repriced while the provider answered
            log.warning("checkout.provider_order_stale", state=current.state.name)
            return

        match created:
            case Ok(provider_order_id):
                self._enter(replace(self._context, cart_snapshot=priced.cart_snapshot,
                                    totals=priced.totals, provider_order_id=provider_order_id))
            case Error(EmptyCartError() as empty):
                self._enter(current.fail(FailureKind.EMPTY_CART, empty.message))
            case Error(CaptureFailed() as failed):
                self._enter(current.fail(FailureKind.PAYMENT_DECLINED, f"Could not start payment: {failed.message}"))

    def _abort(self, kind: FailureKind, message: str) -> None:
        ctx = self._context
        if ctx.state is not CheckoutState.AWAITING_PAYMENT or self._capturing:
            log.warning("checkout.payment_event_ignored", kind=kind.name, state=ctx.state.name,
                        provider_order_id=ctx.provider_order_id)
            return
        self._enter(ctx.fail(kind, message))

    def _abandon(self) -> None:
        if self._locked("abandon"):
            return
        self._session = None
        self._enter(CheckoutContext())

    # ═══════════════════════════════════════════════════════════════════════════
    # Capture and after
    # ═══════════════════════════════════════════════════════════════════════════

    async def _approve(self, provider_order_id: str) -> None:
        ctx = self._context
        if ctx.state is not CheckoutState.AWAITING_PAYMENT or self._session is None:
            log.warning("checkout.approval_ignored", state=ctx.state.name, provider_order_id=provider_order_id)
            return
        if provider_order_id != ctx.provider_order_id:
            # created at totals this checkout no longer has; nothing is captured
            log.warning(
                "checkout.approval_stale",
                provider_order_id=provider_order_id,
                current_provider_order_id=ctx.provider_order_id,
            )
            return

        match await self._session.capture(provider_order_id):
            case Error(DuplicateCapture()):
                return
            case Error(CaptureFailed() as failed):
                self._session = None
                ctx = replace(self._context, provider_order_id=provider_order_id)
                self._enter(ctx.fail(
                    FailureKind.CAPTURE_FAILED,
                    f"Payment could not be completed ({failed.message}). "
                    f"If you were charged, contact support with reference {provider_order_id}.",
                ))
            case Ok(capture):
                ctx = self._context
                shipping = merge(ctx.shipping, capture.payer_shipping)
                missing = compute_missing(shipping)
                captured = replace(
                    ctx,
                    state=CheckoutState.PAYMENT_CAPTURED,
                    provider_order_id=provider_order_id,
                    captured_payment=capture,
                    shipping=shipping,
                    missing_fields=missing,
                )
                if capture.captured_amount != ctx.totals.final_amount:
                    log.warning(
                        "checkout.amount_mismatch",
                        provider_order_id=provider_order_id,
                        captured=str(capture.captured_amount),
                        expected=str(ctx.totals.final_amount),
                    )
                self._enter(captured)

                if missing:
                    self._enter(replace(
                        captured,
                        state=CheckoutState.AWAITING_MISSING_FIELDS,
                        validation=ValidationError(missing),
                    ))
                    return
                await self._persist(captured)

    async def _supply(self, fields: Mapping[str, str], allow_incomplete: bool) -> None:
        ctx = self._context
        if ctx.state is not CheckoutState.AWAITING_MISSING_FIELDS:
            log.warning("checkout.fields_ignored", state=ctx.state.name)
            return

        supplied = {name: value for name, value in fields.items() if str(value or "").strip()}
        shipping = ctx.shipping.updated(supplied)
        missing = compute_missing(shipping)
        if missing and not allow_incomplete:
            self._enter(replace(ctx, shipping=shipping, missing_fields=missing, validation=ValidationError(missing)))
            return
        if missing:
            log.warning("checkout.incomplete_shipping", provider_order_id=ctx.provider_order_id,
                        missing=[key.value for key in missing])
        await self._persist(replace(ctx, shipping=shipping, missing_fields=missing, validation=None))

    async def _persist(self, ctx: CheckoutContext) -> None:
        persisting = replace(ctx, state=CheckoutState.PERSISTING)
        self._enter(persisting)

        order = await assemble_order(persisting)
        match await self._persistence.save(order):
            case Ok(saved):
                await self._complete(persisting, saved)
            case Error(failed):
                await self._record_failure(persisting, failed)

    async def _complete(self, ctx: CheckoutContext, order: Order) -> None:
        self._cart.clear()
        email_sent = await self._send_confirmation(order)
        if self._analytics is not None:
            analytics = self._analytics
            self._spawn("analytics", lambda: analytics.track("purchase", purchase_params(order, self._currency)))
        self._enter(replace(ctx, state=CheckoutState.COMPLETED, order=order, email_sent=email_sent))

    async def _record_failure(self, ctx: CheckoutContext, failed: OrderSaveFailed) -> None:
        record = await assemble_recovery(ctx, failed)
        try:
            self._recovery.append(record)
        except OSError as e:
            # last resort: the full record goes to the log stream
            log.critical("checkout.recovery_log_failed", error=str(e), record=record.to_dict())

        reference = ctx.provider_order_id or failed.provider_order_id
        self._enter(ctx.fail(
            FailureKind.ORDER_SAVE_FAILED,
            f"Your payment went through but we could not save your order. "
            f"Please contact support with reference {reference}.",
            retryable=False,
        ))

    # ═══════════════════════════════════════════════════════════════════════════
    # Side effects
    # ═══════════════════════════════════════════════════════════════════════════

    async def _send_confirmation(self, order: Order) -> bool:
        if self._email is None:
            log.info("checkout.email_not_configured", order_id=order.id)
            return False
        email = self._email
        result = await L.catching_async(
            lambda: asyncio.wait_for(email.send(confirmation_params(order)), timeout=self._email_timeout),
            on_error=lambda e: str(e) or type(e).__name__,
        )
        match result:
            case Ok(_):
                log.info("checkout.email_sent", order_id=order.id)
                return True
            case Error(reason):
                log.warning("checkout.email_failed", order_id=order.id, error=reason)
                self.soft_failures.append(f"email: {reason}")
        return False

    def _spawn(self, name: str, effect: Callable[[], Awaitable[None]]) -> None:
        async def run() -> None:
            result = await L.catching_async(effect, on_error=lambda e: str(e) or type(e).__name__)
            match result:
                case Error(reason):
                    log.warning("checkout.side_effect_failed", effect=name, error=reason)
                    self.soft_failures.append(f"{name}: {reason}")

        task = asyncio.create_task(run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ═══════════════════════════════════════════════════════════════════════════
    # Helpers
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def _capturing(self) -> bool:
        """A capture has started and its outcome is not in the context yet."""
        return (
            self._session is not None
            and self._session.captured
            and self._context.state is CheckoutState.AWAITING_PAYMENT
        )

    def _locked(self, action: str) -> bool:
        ctx = self._context
        if ctx.before_capture and not self._capturing:
            return False
        log.warning("checkout.event_rejected", action=action, state=ctx.state.name,
                    provider_order_id=ctx.provider_order_id)
        return True

    def _priced(self, ctx: CheckoutContext) -> CheckoutContext:
        items = self._cart.items
        return replace(ctx, cart_snapshot=items, totals=compute_totals(subtotal(items), ctx.applied_coupon))

    def _repriced(self, ctx: CheckoutContext) -> CheckoutContext:
        """New totals void any provider order created at the old ones."""
        if ctx.provider_order_id is not None:
            log.info("checkout.provider_order_voided", provider_order_id=ctx.provider_order_id)
        return self._priced(replace(ctx, provider_order_id=None))

    def _enter(self, ctx: CheckoutContext) -> None:
        if ctx.state is not self._context.state:
            log.debug("checkout.transition", before=self._context.state.name, after=ctx.state.name)
        self._context = ctx
