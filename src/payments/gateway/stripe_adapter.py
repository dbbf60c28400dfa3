"""Stripe payment gateway adapter.

Uses the stripe-python SDK to:
- Create hosted Checkout Sessions
- Retrieve a session's payment status for client-initiated confirmation
- Verify webhook signatures using Stripe's signing secret

Network retries are disabled and every call is bounded by a timeout: a
retried session creation could open a second session for the same order.
"""

import json

import stripe
import structlog

from payments.gateway.port import (
    CheckoutSession,
    PaymentGateway,
    SessionLineItem,
    SessionStatus,
    SignatureVerificationError,
    WebhookEvent,
)
from shared.errors import PaymentGatewayError

logger = structlog.get_logger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300
METADATA_KEYS = ("order_id", "owner")


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    def __init__(self, api_key: str, webhook_secret: str, currency: str = "usd", timeout: float = 10.0) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency
        self.timeout = timeout

        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    def _line_item(self, item: SessionLineItem) -> dict:
        return {
            "price_data": {
                "currency": self.currency,
                "product_data": {
                    "name": item.name,
                    "images": [item.image] if item.image else [],
                },
                "unit_amount": item.unit_amount,
            },
            "quantity": item.quantity,
        }

    def create_session(
        self,
        line_items: list[SessionLineItem],
        success_url: str,
        cancel_url: str,
        metadata: dict,
        customer_email: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        params = {
            "mode": "payment",
            "line_items": [self._line_item(item) for item in line_items],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {key: str(value) for key, value in metadata.items()},
        }
        if customer_email:
            params["customer_email"] = customer_email
        if idempotency_key:
            params["idempotency_key"] = idempotency_key

        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except stripe.StripeError as exc:
            logger.error("Stripe session creation failed", error=str(exc), metadata=params["metadata"])
            raise PaymentGatewayError(f"Payment processor error: {exc.user_message or exc}") from exc

        return CheckoutSession(session_id=session.id, redirect_url=session.url)

    def retrieve_session(self, session_id: str) -> SessionStatus:
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.error("Stripe session retrieval failed", session_id=session_id, error=str(exc))
            raise PaymentGatewayError(f"Payment processor error: {exc.user_message or exc}") from exc

        metadata = {}
        if session.metadata:
            for key in METADATA_KEYS:
                value = getattr(session.metadata, key, None)
                if value is not None:
                    metadata[key] = value

        return SessionStatus(
            session_id=session.id,
            payment_status=session.payment_status,
            status=session.status,
            metadata=metadata,
        )

    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret, WEBHOOK_TOLERANCE_SECONDS)
        except UnicodeDecodeError:
            raise SignatureVerificationError("Webhook Error: payload is not valid UTF-8") from None
        except stripe.SignatureVerificationError as exc:
            raise SignatureVerificationError(f"Webhook Error: {exc}") from exc

        try:
            event = json.loads(body)
            session = event["data"]["object"]
            return WebhookEvent(
                event_id=event.get("id", ""),
                event_type=event["type"],
                session_id=session.get("id"),
                payment_status=session.get("payment_status"),
                metadata=session.get("metadata") or {},
            )
        except (ValueError, KeyError, TypeError, AttributeError):
            raise SignatureVerificationError("Webhook Error: malformed payload") from None
