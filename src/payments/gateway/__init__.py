"""Payment gateway factory.

``build_gateway(settings)`` returns the adapter selected by configuration:
- FakeGateway for development and testing
- StripeGateway for production

The process entry point builds one gateway and injects it into the checkout
orchestrator and the payment reconciler.
"""

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import PaymentGateway
from shared.config import Settings


def build_gateway(settings: Settings) -> PaymentGateway:
    if settings.payment_gateway == "fake":
        if settings.is_production:
            raise ValueError("The fake payment gateway cannot be used in production")
        if settings.stripe_webhook_secret:
            return FakeGateway(webhook_secret=settings.stripe_webhook_secret)
        return FakeGateway()

    if settings.payment_gateway == "stripe":
        if not settings.stripe_secret_key or not settings.stripe_webhook_secret:
            raise ValueError("STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET are required for the stripe gateway")

        from payments.gateway.stripe_adapter import StripeGateway

        return StripeGateway(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            currency=settings.checkout_currency,
            timeout=settings.payment_timeout_seconds,
        )

    raise ValueError(f"Unknown payment gateway: {settings.payment_gateway}")
