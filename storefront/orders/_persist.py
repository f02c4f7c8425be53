"""
OrderPersistence — save a paid order, retrying transient failures.

Retryable failures back off per RetryPolicy; a 4xx rejection stops at
once. The result is always a Result, never an exception.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from combinators import lift as L
from kungfu import Error, Ok, Result

from storefront.orders._policy import RetryPolicy
from storefront.orders._store import OrderStore
from storefront.orders._types import Order, OrderSaveFailed, OrderStoreError

type Sleep = Callable[[float], Awaitable[None]]


class OrderPersistence:
    def __init__(
        self,
        store: OrderStore,
        retry: RetryPolicy = RetryPolicy(),
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._retry = retry
        self._sleep = sleep

    @property
    def retry(self) -> RetryPolicy:
        return self._retry

    async def save(self, order: Order) -> Result[Order, OrderSaveFailed]:
        log = structlog.get_logger().bind(
            provider_order_id=order.provider_order_id,
            transaction_id=order.transaction_id,
        )
        attempts = max(1, self._retry.attempts)
        attempt = 0

        while True:
            attempt += 1
            result = await L.catching_async(lambda: self._store.create(order), on_error=_as_store_error)
            match result:
                case Ok(saved):
                    log.info("order.saved", order_id=saved.id, attempt=attempt)
                    return Ok(saved)
                case Error(err) if not err.retryable:
                    log.error("order.save_rejected", status=err.status, error=err.message, attempt=attempt)
                    return Error(_failed(order, err, attempt))
                case Error(err) if attempt >= attempts:
                    log.error("order.save_exhausted", attempts=attempts, error=err.message)
                    return Error(_failed(order, err, attempt))
                case Error(err):
                    delay = self._retry.delay(attempt)
                    log.warning("order.save_retry", attempt=attempt, delay=delay, error=err.message)
                    await self._sleep(delay)


def _as_store_error(e: Exception) -> OrderStoreError:
    return e if isinstance(e, OrderStoreError) else OrderStoreError(str(e) or type(e).__name__)


def _failed(order: Order, err: OrderStoreError, attempts: int) -> OrderSaveFailed:
    return OrderSaveFailed(
        provider_order_id=order.provider_order_id,
        transaction_id=order.transaction_id,
        message=err.message,
        attempts=attempts,
        status=err.status,
    )
