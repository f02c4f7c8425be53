"""Application root for the client side of checkout."""

from __future__ import annotations

import httpx

from storefront.cart import CartSnapshot, JsonFileCartStorage
from storefront.checkout._orchestrator import CheckoutOrchestrator
from storefront.config import Settings
from storefront.coupon import HttpCouponStore
from storefront.notify import EmailJSSender, LogAnalyticsSink
from storefront.orders import HttpOrderStore, JsonLinesRecoveryLog, OrderPersistence, RetryPolicy
from storefront.payment import PayPalProvider


def build_orchestrator(
    settings: Settings,
    client: httpx.AsyncClient,
    *,
    cart: CartSnapshot | None = None,
) -> CheckoutOrchestrator:
    """
    Wire the production adapters from settings. The caller owns `client`.

    Example:
        async with httpx.AsyncClient(timeout=15) as client:
            orchestrator = build_orchestrator(Settings.from_env(), client)
    """
    provider = PayPalProvider(
        client,
        client_id=settings.paypal.client_id,
        client_secret=settings.paypal.client_secret,
        base_url=settings.paypal.base_url,
    )
    persistence = OrderPersistence(
        HttpOrderStore(client, settings.order_endpoint),
        RetryPolicy(
            attempts=settings.order_save_attempts,
            backoff_initial=settings.order_save_backoff,
        ),
    )
    return CheckoutOrchestrator(
        cart=cart if cart is not None else CartSnapshot(JsonFileCartStorage(settings.cart_path)),
        coupons=HttpCouponStore(client, settings.coupon_endpoint),
        provider=provider,
        persistence=persistence,
        recovery=JsonLinesRecoveryLog(settings.recovery_log_path),
        email=EmailJSSender(client, settings.email) if settings.email.configured else None,
        analytics=LogAnalyticsSink(),
        currency=settings.paypal.currency,
        ready_timeout=settings.provider_ready_timeout,
        email_timeout=settings.email_timeout,
    )
