"""
Runtime settings, read from `STOREFRONT_*` environment variables.

    settings = Settings.from_env()
    settings.paypal.client_id

Tests build `Settings(...)` directly.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict


# ═══════════════════════════════════════════════════════════════════════════════
# Vendor sections
# ═══════════════════════════════════════════════════════════════════════════════

class PayPalSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: str = ""
    client_secret: str = ""
    base_url: str = "https://api-m.sandbox.paypal.com"
    currency: str = "USD"


class EmailSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    service_id: str = ""
    template_id: str = ""
    public_key: str = ""
    endpoint: str = "https://api.emailjs.com/api/v1.0/email/send"

    @property
    def configured(self) -> bool:
        return bool(self.service_id and self.template_id and self.public_key)


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════

class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_endpoint: str = "http://localhost:8000/api/create-order"
    coupon_endpoint: str = "http://localhost:8000/api/coupons"
    database_url: str = "sqlite+aiosqlite:///storefront.db"
    cart_path: Path = Path(".storefront/cart.json")
    recovery_log_path: Path = Path(".storefront/recovery.jsonl")
    provider_ready_timeout: float = 8.0
    email_timeout: float = 10.0
    order_save_attempts: int = 3
    order_save_backoff: float = 1.0
    paypal: PayPalSettings = PayPalSettings()
    email: EmailSettings = EmailSettings()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Unset or empty variables keep their defaults."""
        env = os.environ if environ is None else environ

        def pick(names: Mapping[str, str]) -> dict[str, str]:
            return {field: env[name] for field, name in names.items() if env.get(name)}

        return cls(
            **pick(_ENV),
            paypal=PayPalSettings(**pick(_PAYPAL_ENV)),
            email=EmailSettings(**pick(_EMAIL_ENV)),
        )


_ENV = {
    "order_endpoint": "STOREFRONT_ORDER_ENDPOINT",
    "coupon_endpoint": "STOREFRONT_COUPON_ENDPOINT",
    "database_url": "STOREFRONT_DATABASE_URL",
    "cart_path": "STOREFRONT_CART_PATH",
    "recovery_log_path": "STOREFRONT_RECOVERY_LOG",
    "provider_ready_timeout": "STOREFRONT_PROVIDER_READY_TIMEOUT",
    "email_timeout": "STOREFRONT_EMAIL_TIMEOUT",
    "order_save_attempts": "STOREFRONT_ORDER_SAVE_ATTEMPTS",
    "order_save_backoff": "STOREFRONT_ORDER_SAVE_BACKOFF",
}

_PAYPAL_ENV = {
    "client_id": "STOREFRONT_PAYPAL_CLIENT_ID",
    "client_secret": "STOREFRONT_PAYPAL_CLIENT_SECRET",
    "base_url": "STOREFRONT_PAYPAL_BASE_URL",
    "currency": "STOREFRONT_CURRENCY",
}

_EMAIL_ENV = {
    "service_id": "STOREFRONT_EMAILJS_SERVICE_ID",
    "template_id": "STOREFRONT_EMAILJS_TEMPLATE_ID",
    "public_key": "STOREFRONT_EMAILJS_PUBLIC_KEY",
}


__all__ = ("Settings", "PayPalSettings", "EmailSettings")
