"""Tests for the checkout state machine."""

import asyncio
from decimal import Decimal

import pytest

from storefront.checkout import (
    Abandon,
    ApplyCoupon,
    Begin,
    CheckoutError,
    CheckoutState,
    FailureKind,
    PaymentApproved,
    PaymentCancelled,
    PaymentErrored,
    RemoveCoupon,
    SupplyMissingFields,
    UpdateShipping,
)
from storefront.coupon import RejectionKind
from storefront.orders import OrderStoreError
from storefront.payment import ProviderError
from storefront.shipping import FieldKey, ShippingAddress

from _fakes import (
    BrokenCouponStore,
    FakeProvider,
    FlakyOrderStore,
    RecordingAnalytics,
    RecordingEmail,
    email_error,
    make_rig,
    server_error,
)

def _checkout(rig, *events, approve=True):
    """Begin, apply `events`, create the provider order and approve it."""

    async def scenario():
        orchestrator = rig.orchestrator
        await orchestrator.dispatch(Begin())
        for event in events:
            await orchestrator.dispatch(event)
        if not approve:
            return orchestrator.context
        provider_order_id = await orchestrator.create_provider_order()
        ctx = await orchestrator.dispatch(PaymentApproved(provider_order_id))
        await orchestrator.drain()
        return ctx

    return asyncio.run(scenario())


class TestHappyPath:
    def test_completes_and_clears_cart(self):
        rig = make_rig()
        ctx = _checkout(rig)

        assert ctx.state is CheckoutState.COMPLETED
        assert ctx.order.id.startswith("ord_")
        assert ctx.order.final_amount == Decimal("50.00")
        assert ctx.order.transaction_id == "TX-PP-1"
        assert ctx.email_sent is True
        assert rig.cart.is_empty
        assert rig.provider.created == [("50.00", "USD", "Order - 3 items")]
        assert len(rig.store) == 1
        assert rig.recovery.read_all() == []

    def test_confirmation_email_and_analytics(self):
        rig = make_rig()
        ctx = _checkout(rig)

        params = rig.email.sent[0]
        assert params["email"] == "ada@example.com"
        assert params["order_id"] == "PP-1"
        assert params["cost_total"] == "50.00"
        assert params["shipping_address"] == "1 Main St, London, N1 9GU, GB"

        event, data = rig.analytics.events[0]
        assert event == "purchase"
        assert data["transaction_id"] == ctx.order.transaction_id
        assert data["value"] == "50.00"

    def test_user_shipping_wins_over_payer(self):
        rig = make_rig()
        ctx = _checkout(rig, UpdateShipping({"fullName": "Grace Hopper", "city": "Arlington"}))
        assert ctx.order.shipping.full_name == "Grace Hopper"
        assert ctx.order.shipping.city == "Arlington"
        assert ctx.order.shipping.email == "ada@example.com"


class TestCoupons:
    def test_discount_flows_into_provider_amount_and_order(self):
        rig = make_rig()
        ctx = _checkout(rig, ApplyCoupon(" save10 "))
        assert rig.provider.created[0][0] == "45.00"
        assert ctx.order.discount_amount == Decimal("5.00")
        assert ctx.order.final_amount == Decimal("45.00")
        assert ctx.order.coupon_code == "SAVE10"

    def test_second_coupon_is_rejected(self):
        rig = make_rig()
        ctx = _checkout(rig, ApplyCoupon("SAVE10"), ApplyCoupon("SAVE10"), approve=False)
        assert ctx.applied_coupon.code == "SAVE10"
        assert ctx.coupon_rejection.kind is RejectionKind.ALREADY_APPLIED
        assert ctx.totals.final_amount == Decimal("45.00")

    def test_remove_coupon_restores_subtotal(self):
        rig = make_rig()
        ctx = _checkout(rig, ApplyCoupon("SAVE10"), RemoveCoupon(), approve=False)
        assert ctx.applied_coupon is None
        assert ctx.totals.final_amount == ctx.totals.subtotal == Decimal("50.00")

    def test_coupon_after_provider_order_voids_it(self):
        rig = make_rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            stale = await rig.orchestrator.create_provider_order()
            repriced = await rig.orchestrator.dispatch(ApplyCoupon("SAVE10"))
            ignored = await rig.orchestrator.dispatch(PaymentApproved(stale))
            current = await rig.orchestrator.create_provider_order()
            done = await rig.orchestrator.dispatch(PaymentApproved(current))
            await rig.orchestrator.drain()
            return repriced.provider_order_id, ignored.state, current, done

        voided_id, ignored_state, current, ctx = asyncio.run(scenario())
        assert voided_id is None
        assert ignored_state is CheckoutState.AWAITING_PAYMENT
        assert current == "PP-2"
        assert [amount for amount, _, _ in rig.provider.created] == ["50.00", "45.00"]
        assert rig.provider.captured == ["PP-2"]
        assert ctx.state is CheckoutState.COMPLETED
        assert ctx.order.final_amount == Decimal("45.00")
        assert ctx.order.provider_order_id == "PP-2"

    def test_removing_coupon_after_provider_order_voids_it(self):
        rig = make_rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            await rig.orchestrator.dispatch(ApplyCoupon("SAVE10"))
            stale = await rig.orchestrator.create_provider_order()
            await rig.orchestrator.dispatch(RemoveCoupon())
            return await rig.orchestrator.dispatch(PaymentApproved(stale))

        ctx = asyncio.run(scenario())
        assert ctx.state is CheckoutState.AWAITING_PAYMENT
        assert ctx.provider_order_id is None
        assert ctx.totals.final_amount == Decimal("50.00")
        assert rig.provider.captured == []
        assert len(rig.store) == 0

    def test_coupon_usage_is_left_to_the_order_endpoint(self):
        rig = make_rig()
        ctx = _checkout(rig, ApplyCoupon("SAVE10"))
        payload = ctx.order.to_payload()
        assert payload["couponId"] == "c1"
        assert payload["couponCode"] == "SAVE10"
        assert rig.orchestrator.soft_failures == []

    def test_invalid_code_keeps_checkout_going(self):
        rig = make_rig()
        ctx = _checkout(rig, ApplyCoupon("NOPE"), approve=False)
        assert ctx.state is CheckoutState.AWAITING_PAYMENT
        assert ctx.coupon_rejection.kind is RejectionKind.INVALID_CODE

    def test_coupon_service_down(self):
        rig = make_rig(coupons=BrokenCouponStore())
        ctx = _checkout(rig, ApplyCoupon("SAVE10"), approve=False)
        assert ctx.coupon_rejection.kind is RejectionKind.SERVICE_UNAVAILABLE
        assert ctx.applied_coupon is None


class TestBeforeCapture:
    def test_empty_cart_never_reaches_provider(self):
        rig = make_rig(items=[])
        ctx = _checkout(rig, approve=False)
        assert ctx.state is CheckoutState.FAILED
        assert ctx.failure.kind is FailureKind.EMPTY_CART
        assert rig.provider.created == []

    def test_cart_emptied_after_begin(self):
        rig = make_rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            rig.cart.clear()
            await rig.orchestrator.create_provider_order()

        with pytest.raises(CheckoutError) as info:
            asyncio.run(scenario())
        assert info.value.failure.kind is FailureKind.EMPTY_CART
        assert rig.provider.created == []

    def test_provider_not_ready(self):
        rig = make_rig(provider=FakeProvider(ready_delay=1.0), ready_timeout=0.01)
        ctx = _checkout(rig, approve=False)
        assert ctx.failure.kind is FailureKind.PROVIDER_UNAVAILABLE
        assert ctx.failure.retryable

    def test_begin_again_after_provider_recovers(self):
        provider = FakeProvider(fail_prepare=ProviderError("sdk failed to load"))
        rig = make_rig(provider=provider)

        async def scenario():
            failed = await rig.orchestrator.dispatch(Begin())
            provider.fail_prepare = None
            return failed, await rig.orchestrator.dispatch(Begin())

        failed, ready = asyncio.run(scenario())
        assert failed.failure.kind is FailureKind.PROVIDER_UNAVAILABLE
        assert ready.state is CheckoutState.AWAITING_PAYMENT
        assert ready.failure is None

    def test_cancel_then_restart(self):
        rig = make_rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            cancelled = await rig.orchestrator.dispatch(PaymentCancelled())
            return cancelled, await rig.orchestrator.dispatch(Begin())

        cancelled, restarted = asyncio.run(scenario())
        assert cancelled.failure.kind is FailureKind.PAYMENT_CANCELLED
        assert cancelled.failure.retryable
        assert restarted.state is CheckoutState.AWAITING_PAYMENT

    def test_widget_error(self):
        rig = make_rig()
        ctx = _checkout(rig, PaymentErrored("popup closed", {"debug_id": "x"}), approve=False)
        assert ctx.failure.kind is FailureKind.PAYMENT_DECLINED

    def test_capture_declined_names_provider_order(self):
        rig = make_rig(provider=FakeProvider(fail_capture=ProviderError("INSTRUMENT_DECLINED", status=422)))
        ctx = _checkout(rig)
        assert ctx.failure.kind is FailureKind.CAPTURE_FAILED
        assert "PP-1" in ctx.failure.message
        assert len(rig.store) == 0
        assert not rig.cart.is_empty

    def test_abandon_resets(self):
        rig = make_rig()
        ctx = _checkout(rig, UpdateShipping({"city": "Oslo"}), Abandon(), approve=False)
        assert ctx.state is CheckoutState.IDLE
        assert ctx.shipping == ShippingAddress()


class TestCaptureLatch:
    def test_concurrent_approvals_capture_once(self):
        rig = make_rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            provider_order_id = await rig.orchestrator.create_provider_order()
            await asyncio.gather(
                rig.orchestrator.dispatch(PaymentApproved(provider_order_id)),
                rig.orchestrator.dispatch(PaymentApproved(provider_order_id)),
            )
            await rig.orchestrator.drain()
            return rig.orchestrator.context

        ctx = asyncio.run(scenario())
        assert ctx.state is CheckoutState.COMPLETED
        assert rig.provider.captured == ["PP-1"]
        assert len(rig.store) == 1
        assert len(rig.email.sent) == 1

    def _race(self, rig, other):
        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            provider_order_id = await rig.orchestrator.create_provider_order()
            await asyncio.gather(
                rig.orchestrator.dispatch(PaymentApproved(provider_order_id)),
                rig.orchestrator.dispatch(other),
            )
            await rig.orchestrator.drain()
            return rig.orchestrator.context

        return asyncio.run(scenario())

    def test_cancel_during_capture_is_refused(self):
        rig = make_rig()
        ctx = self._race(rig, PaymentCancelled())
        assert ctx.state is CheckoutState.COMPLETED
        assert ctx.failure is None
        assert len(rig.store) == 1

    def test_widget_error_during_failing_capture(self):
        rig = make_rig(provider=FakeProvider(fail_capture=ProviderError("INTERNAL_SERVER_ERROR", status=500)))
        ctx = self._race(rig, PaymentErrored("onApprove threw", {}))
        assert ctx.failure.kind is FailureKind.CAPTURE_FAILED
        assert "PP-1" in ctx.failure.message

    def test_begin_during_capture_opens_no_second_payment(self):
        rig = make_rig()
        ctx = self._race(rig, Begin())
        assert ctx.state is CheckoutState.COMPLETED
        assert rig.provider.created == [("50.00", "USD", "Order - 3 items")]
        assert rig.provider.captured == ["PP-1"]
        assert len(rig.store) == 1

    @pytest.mark.parametrize(
        "edit",
        [ApplyCoupon("SAVE10"), RemoveCoupon(), UpdateShipping({"city": "Paris"}), Abandon()],
        ids=["apply_coupon", "remove_coupon", "update_shipping", "abandon"],
    )
    def test_edits_during_capture_are_refused(self, edit):
        rig = make_rig()
        ctx = self._race(rig, edit)
        assert ctx.state is CheckoutState.COMPLETED
        assert ctx.order.final_amount == Decimal("50.00")
        assert ctx.order.coupon_code is None
        assert ctx.order.shipping.city == "London"

    def test_late_approval_is_ignored(self):
        rig = make_rig()

        async def scenario():
            ctx = await rig.orchestrator.dispatch(Begin())
            provider_order_id = await rig.orchestrator.create_provider_order()
            await rig.orchestrator.dispatch(PaymentApproved(provider_order_id))
            return await rig.orchestrator.dispatch(PaymentApproved(provider_order_id))

        ctx = asyncio.run(scenario())
        assert ctx.state is CheckoutState.COMPLETED
        assert rig.provider.captured == ["PP-1"]


class TestMissingFields:
    def _rig(self):
        payer = ShippingAddress(full_name="Ada", email="not-an-email", address="1 Main St",
                                city="London", zip_code="N1", country="GB")
        return make_rig(provider=FakeProvider(payer=payer))

    def test_waits_for_missing_fields(self):
        rig = self._rig()
        ctx = _checkout(rig)
        assert ctx.state is CheckoutState.AWAITING_MISSING_FIELDS
        assert ctx.missing_fields == (FieldKey.EMAIL, FieldKey.PHONE)
        assert ctx.validation.missing == ctx.missing_fields
        assert len(rig.store) == 0

    def test_payer_without_details_needs_every_field(self):
        rig = make_rig(provider=FakeProvider(payer=ShippingAddress()))
        ctx = _checkout(rig)
        assert ctx.state is CheckoutState.AWAITING_MISSING_FIELDS
        assert ctx.missing_fields == tuple(FieldKey)
        assert ctx.captured_payment.transaction_id == "TX-PP-1"
        assert len(rig.store) == 0
        assert not rig.cart.is_empty

    def test_supply_until_complete(self):
        rig = self._rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            provider_order_id = await rig.orchestrator.create_provider_order()
            await rig.orchestrator.dispatch(PaymentApproved(provider_order_id))
            partial = await rig.orchestrator.dispatch(SupplyMissingFields({"phone": "555", "email": "  "}))
            done = await rig.orchestrator.dispatch(SupplyMissingFields({"email": "ada@example.com"}))
            return partial, done

        partial, done = asyncio.run(scenario())
        assert partial.state is CheckoutState.AWAITING_MISSING_FIELDS
        assert partial.missing_fields == (FieldKey.EMAIL,)
        assert done.state is CheckoutState.COMPLETED
        assert done.order.shipping.phone == "555"
        assert done.order.shipping.email == "ada@example.com"

    def test_allow_incomplete(self):
        rig = self._rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            provider_order_id = await rig.orchestrator.create_provider_order()
            await rig.orchestrator.dispatch(PaymentApproved(provider_order_id))
            return await rig.orchestrator.dispatch(SupplyMissingFields({}, allow_incomplete=True))

        ctx = asyncio.run(scenario())
        assert ctx.state is CheckoutState.COMPLETED
        assert ctx.order.shipping.phone == ""

    def test_no_way_back_after_capture(self):
        rig = self._rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            provider_order_id = await rig.orchestrator.create_provider_order()
            captured = await rig.orchestrator.dispatch(PaymentApproved(provider_order_id))
            await rig.orchestrator.dispatch(Abandon())
            await rig.orchestrator.dispatch(ApplyCoupon("SAVE10"))
            await rig.orchestrator.dispatch(UpdateShipping({"city": "Paris"}))
            return captured, await rig.orchestrator.dispatch(Begin())

        captured, after = asyncio.run(scenario())
        assert after == captured
        assert after.applied_coupon is None
        assert after.shipping.city == "London"

    def test_order_uses_snapshot_not_live_cart(self):
        rig = self._rig()

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            provider_order_id = await rig.orchestrator.create_provider_order()
            await rig.orchestrator.dispatch(PaymentApproved(provider_order_id))
            rig.cart.add({"id": "p9", "name": "Late", "price": "99"})
            return await rig.orchestrator.dispatch(
                SupplyMissingFields({"email": "ada@example.com", "phone": "555"})
            )

        ctx = asyncio.run(scenario())
        assert [item.id for item in ctx.order.items] == ["p1", "p2"]
        assert ctx.order.final_amount == Decimal("50.00")


class TestOrderSaveFailure:
    def test_exhausted_retries_write_recovery_record(self):
        rig = make_rig(store=FlakyOrderStore(always=server_error()))
        ctx = _checkout(rig)

        assert ctx.state is CheckoutState.FAILED
        assert ctx.failure.kind is FailureKind.ORDER_SAVE_FAILED
        assert not ctx.failure.retryable
        assert "PP-1" in ctx.failure.message
        assert rig.store.calls == 3
        assert rig.sleeps == [1.0, 2.0]
        assert not rig.cart.is_empty
        assert rig.email.sent == []

        [record] = rig.recovery.read_all()
        assert record.provider_order_id == "PP-1"
        assert record.transaction_id == "TX-PP-1"
        assert record.amount == Decimal("50.00")
        assert record.attempts == 3
        assert [item.id for item in record.items] == ["p1", "p2"]

    def test_client_error_fails_after_one_attempt(self):
        rig = make_rig(store=FlakyOrderStore(always=OrderStoreError("invalid", status=400)))
        ctx = _checkout(rig)
        assert ctx.failure.kind is FailureKind.ORDER_SAVE_FAILED
        assert rig.store.calls == 1
        assert rig.recovery.read_all()[0].attempts == 1

    def test_failed_state_is_terminal(self):
        rig = make_rig(store=FlakyOrderStore(always=server_error()))

        async def scenario():
            await rig.orchestrator.dispatch(Begin())
            provider_order_id = await rig.orchestrator.create_provider_order()
            failed = await rig.orchestrator.dispatch(PaymentApproved(provider_order_id))
            return failed, await rig.orchestrator.dispatch(Begin())

        failed, after = asyncio.run(scenario())
        assert after == failed


class TestSoftFailures:
    def test_email_failure_still_completes(self):
        rig = make_rig(email=RecordingEmail(error=email_error()))
        ctx = _checkout(rig)
        assert ctx.state is CheckoutState.COMPLETED
        assert ctx.email_sent is False
        assert any(failure.startswith("email") for failure in rig.orchestrator.soft_failures)

    def test_email_timeout_still_completes(self):
        rig = make_rig(email=RecordingEmail(delay=1.0), email_timeout=0.01)
        ctx = _checkout(rig)
        assert ctx.state is CheckoutState.COMPLETED
        assert ctx.email_sent is False

    def test_email_not_configured(self):
        rig = make_rig(with_email=False)
        ctx = _checkout(rig)
        assert ctx.state is CheckoutState.COMPLETED
        assert ctx.email_sent is False

    def test_analytics_failure_is_isolated(self):
        rig = make_rig(analytics=RecordingAnalytics(error=RuntimeError("beacon blocked")))
        ctx = _checkout(rig)
        assert ctx.state is CheckoutState.COMPLETED
        assert "analytics: beacon blocked" in rig.orchestrator.soft_failures
