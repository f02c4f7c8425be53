"""
PaymentSession — one checkout's conversation with the payment provider.

The capture latch is set before the first await inside `capture`, so a
second approval on the same event loop always sees it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog
from combinators import lift as L
from kungfu import Error, Ok, Result

from storefront.cart import LineItem
from storefront.payment._types import (
    CaptureFailed,
    CaptureStatus,
    DuplicateCapture,
    EmptyCartError,
    PaymentCapture,
    PaymentProvider,
    ProviderError,
    ProviderUnavailable,
)
from storefront.pricing import Totals, to_provider_amount


class PaymentSession:
    __slots__ = ("_provider", "_currency", "_ready_timeout", "_latched", "_log")

    def __init__(
        self,
        provider: PaymentProvider,
        *,
        currency: str = "USD",
        ready_timeout: float = 8.0,
    ) -> None:
        self._provider = provider
        self._currency = currency
        self._ready_timeout = ready_timeout
        self._latched = False
        self._log = structlog.get_logger().bind(component="payment")

    @property
    def captured(self) -> bool:
        return self._latched

    async def ready(self) -> Result[None, ProviderUnavailable]:
        """Wait for the provider SDK/credentials, bounded by `ready_timeout`."""

        def unavailable(e: Exception) -> ProviderUnavailable:
            if isinstance(e, TimeoutError):
                message = f"Payment provider did not become ready within {self._ready_timeout:g}s"
            else:
                message = f"Payment provider unavailable: {e}"
            self._log.warning("payment.not_ready", error=message)
            return ProviderUnavailable(message)

        return await L.catching_async(
            lambda: asyncio.wait_for(self._provider.prepare(), timeout=self._ready_timeout),
            on_error=unavailable,
        )

    async def create_order(
        self,
        items: Sequence[LineItem],
        totals: Totals,
    ) -> Result[str, EmptyCartError | CaptureFailed]:
        if not items or totals.final_amount <= 0:
            return Error(EmptyCartError())

        amount = to_provider_amount(totals.final_amount)
        description = f"Order - {sum(item.quantity for item in items)} items"

        result = await L.catching_async(
            lambda: self._provider.create_order(amount, self._currency, description),
            on_error=lambda e: _failed(None, e),
        )
        match result:
            case Ok(provider_order_id):
                self._log.info("payment.order_created", provider_order_id=provider_order_id, amount=amount)
            case Error(failure):
                self._log.warning("payment.order_create_failed", error=failure.message)
        return result

    async def capture(
        self,
        provider_order_id: str,
    ) -> Result[PaymentCapture, CaptureFailed | DuplicateCapture]:
        log = self._log.bind(provider_order_id=provider_order_id)
        if self._latched:
            log.warning("payment.duplicate_capture")
            return Error(DuplicateCapture(provider_order_id))
        self._latched = True

        result = await L.catching_async(
            lambda: self._provider.capture_order(provider_order_id),
            on_error=lambda e: _failed(provider_order_id, e),
        )
        match result:
            case Ok(capture) if capture.status is not CaptureStatus.COMPLETED:
                log.error("payment.capture_not_completed", status=capture.status.value)
                return Error(CaptureFailed(provider_order_id, f"Payment {capture.status.value}"))
            case Ok(capture):
                log.info(
                    "payment.captured",
                    transaction_id=capture.transaction_id,
                    amount=str(capture.captured_amount),
                )
                return Ok(capture)
            case Error(failure):
                log.error("payment.capture_failed", error=failure.message, payload=failure.payload)
                return Error(failure)


def _failed(provider_order_id: str | None, e: Exception) -> CaptureFailed:
    if isinstance(e, ProviderError):
        return CaptureFailed(provider_order_id, e.message, e.payload, e.status)
    return CaptureFailed(provider_order_id, str(e) or type(e).__name__)
