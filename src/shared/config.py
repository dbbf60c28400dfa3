"""Runtime configuration for the storefront.

Settings are read from environment variables once, by the process entry point
(``app.create_app`` or ``manage.py``), and handed to the services that need
them. Nothing below reads the environment on its own.
"""

import os
from typing import Literal

from pydantic import BaseModel, ConfigDict

# Environment variable → Settings field
_ENV_FIELDS = {
    "STOREFRONT_ENV": "environment",
    "DATABASE_URL": "database_url",
    "PAYMENT_GATEWAY": "payment_gateway",
    "STRIPE_SECRET_KEY": "stripe_secret_key",
    "STRIPE_WEBHOOK_SECRET": "stripe_webhook_secret",
    "PAYMENT_TIMEOUT_SECONDS": "payment_timeout_seconds",
    "CHECKOUT_SUCCESS_URL": "checkout_success_url",
    "CHECKOUT_CANCEL_URL": "checkout_cancel_url",
    "CHECKOUT_CURRENCY": "checkout_currency",
    "CART_CLEAR_MODE": "cart_clear_mode",
    "CART_CLEAR_URL": "cart_clear_url",
    "INTERNAL_API_TOKEN": "internal_api_token",
    "RELEASE_STOCK_ON_PAYMENT_FAILURE": "release_stock_on_payment_failure",
    "CANCEL_ORDER_ON_PAYMENT_FAILURE": "cancel_order_on_payment_failure",
    "MERGE_GUEST_CARTS": "merge_guest_carts",
    "LOG_LEVEL": "log_level",
}


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    environment: Literal["development", "test", "staging", "production"] = "development"
    database_url: str = "sqlite:///storefront.db"

    # Payment processor
    payment_gateway: Literal["fake", "stripe"] = "fake"
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    payment_timeout_seconds: float = 10.0
    checkout_success_url: str = "http://localhost:5173/success?session_id={CHECKOUT_SESSION_ID}"
    checkout_cancel_url: str = "http://localhost:5173/cancel"
    checkout_currency: str = "usd"

    # Cart-clear signal
    cart_clear_mode: Literal["local", "http"] = "local"
    cart_clear_url: str = "http://localhost:3003/internal/carts/{owner}/clear"
    internal_api_token: str | None = None

    # Policies left open upstream
    release_stock_on_payment_failure: bool = False
    cancel_order_on_payment_failure: bool = False
    merge_guest_carts: bool = False

    log_level: str | None = None

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from environment variables, ignoring unset ones."""
        environ = os.environ if environ is None else environ
        values = {field: environ[name] for name, field in _ENV_FIELDS.items() if environ.get(name) not in (None, "")}
        return cls(**values)
