"""Configurable fake payment gateway for development and testing.

This adapter simulates a hosted checkout processor without any external
calls. It can be configured at runtime to fail or time out, making it useful
for:
- Manual API testing via /payments/gateway/configure
- Automated tests with predictable outcomes
- Development without real gateway credentials

Webhook payloads are signed with HMAC-SHA256 over the raw body using the
shared secret, so signature checks behave like the real thing.
"""

import hashlib
import hmac
import json
from uuid import uuid4

from payments.gateway.port import (
    SESSION_PAID,
    CheckoutSession,
    PaymentGateway,
    SessionLineItem,
    SessionStatus,
    SignatureVerificationError,
    WebhookEvent,
)
from shared.errors import PaymentGatewayError

DEFAULT_WEBHOOK_SECRET = "whsec_fake"


class FakeGateway(PaymentGateway):
    """Configurable fake hosted checkout gateway."""

    def __init__(self, webhook_secret: str = DEFAULT_WEBHOOK_SECRET) -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment processor unavailable"
        self.sessions: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Payment processor unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_session(
        self,
        line_items: list[SessionLineItem],
        success_url: str,
        cancel_url: str,
        metadata: dict,
        customer_email: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        self.calls.append(
            {
                "method": "create_session",
                "line_items": list(line_items),
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": dict(metadata),
                "customer_email": customer_email,
                "idempotency_key": idempotency_key,
            }
        )

        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

        session_id = f"cs_fake_{uuid4().hex[:16]}"
        self.sessions[session_id] = {
            "payment_status": "unpaid",
            "status": "open",
            "metadata": dict(metadata),
            "amount_total": sum(item.unit_amount * item.quantity for item in line_items),
        }
        return CheckoutSession(
            session_id=session_id,
            redirect_url=f"https://checkout.fake.local/pay/{session_id}",
        )

    def retrieve_session(self, session_id: str) -> SessionStatus:
        self.calls.append({"method": "retrieve_session", "session_id": session_id})

        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

        session = self.sessions.get(session_id)
        if session is None:
            raise PaymentGatewayError(f"No such checkout session: {session_id}")
        return SessionStatus(
            session_id=session_id,
            payment_status=session["payment_status"],
            status=session["status"],
            metadata=dict(session["metadata"]),
        )

    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        if not hmac.compare_digest(self.sign(payload), signature or ""):
            raise SignatureVerificationError("Webhook signature verification failed")

        try:
            event = json.loads(payload)
            session = event["data"]["object"]
            return WebhookEvent(
                event_id=event.get("id", ""),
                event_type=event["type"],
                session_id=session.get("id"),
                payment_status=session.get("payment_status"),
                metadata=session.get("metadata") or {},
            )
        except (ValueError, KeyError, TypeError, AttributeError):
            raise SignatureVerificationError("Malformed webhook payload") from None

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def sign(self, payload: bytes) -> str:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return hmac.new(self.webhook_secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    def complete_session(self, session_id: str) -> None:
        """Simulate the shopper paying on the hosted page."""
        self.sessions[session_id].update(payment_status=SESSION_PAID, status="complete")

    def expire_session(self, session_id: str) -> None:
        """Simulate the shopper abandoning the hosted page."""
        self.sessions[session_id].update(status="expired")

    def build_event(self, event_type: str, session_id: str, event_id: str | None = None) -> bytes:
        """Build a webhook payload for a known session, as the processor would send it."""
        session = self.sessions[session_id]
        event = {
            "id": event_id or f"evt_fake_{uuid4().hex[:16]}",
            "type": event_type,
            "data": {
                "object": {
                    "id": session_id,
                    "object": "checkout.session",
                    "payment_status": session["payment_status"],
                    "status": session["status"],
                    "metadata": session["metadata"],
                    "amount_total": session["amount_total"],
                }
            },
        }
        return json.dumps(event).encode("utf-8")
