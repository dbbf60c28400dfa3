"""Payment gateway port (abstract interface).

Defines the contract every hosted-checkout adapter must implement. This
enables swapping between FakeGateway (dev/test) and StripeGateway
(production) without changing the checkout or reconciliation code.

Adapters raise ``PaymentGatewayError`` for any processor failure, timeouts
included, and ``SignatureVerificationError`` for webhook payloads that do
not verify against the shared secret.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from protean.exceptions import ValidationError

class SignatureVerificationError(ValidationError):
    """A webhook payload failed verification against the shared secret."""

    def __init__(self, message: str) -> None:
        super().__init__({"signature": [message]})


# Processor-side session values the reconciler acts on
SESSION_PAID = "paid"
SESSION_EXPIRED = "expired"


@dataclass(frozen=True)
class SessionLineItem:
    """One priced line sent to the hosted checkout page."""

    name: str
    unit_amount: int  # minor units (cents)
    quantity: int
    image: str | None = None


@dataclass(frozen=True)
class CheckoutSession:
    """Result of opening a hosted checkout session."""

    session_id: str
    redirect_url: str


@dataclass(frozen=True)
class SessionStatus:
    """Processor-side view of a checkout session."""

    session_id: str
    payment_status: str  # paid, unpaid, no_payment_required
    status: str | None = None  # open, complete, expired
    metadata: dict = field(default_factory=dict)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == SESSION_PAID

    @property
    def is_expired(self) -> bool:
        return self.status == SESSION_EXPIRED


@dataclass(frozen=True)
class WebhookEvent:
    """A verified webhook event about a checkout session."""

    event_id: str
    event_type: str
    session_id: str | None
    payment_status: str | None = None
    metadata: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract hosted-checkout gateway interface."""

    @abstractmethod
    def create_session(
        self,
        line_items: list[SessionLineItem],
        success_url: str,
        cancel_url: str,
        metadata: dict,
        customer_email: str | None = None,
        idempotency_key: str | None = None,
    ) -> CheckoutSession:
        """Open a hosted checkout session and return its id and redirect URL."""
        ...

    @abstractmethod
    def retrieve_session(self, session_id: str) -> SessionStatus:
        """Fetch the processor's current view of a session."""
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify a webhook payload against the shared secret and parse it."""
        ...
