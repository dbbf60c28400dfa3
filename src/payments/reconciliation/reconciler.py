"""Payment reconciler: applies processor confirmations to orders exactly once.

Two entry points feed the same idempotent transition:
- ``handle_webhook``: push notification from the processor. The signature is
  verified over the raw body before anything else happens.
- ``confirm_payment``: the shopper's browser returning from the hosted page.
  The session is re-read from the processor; the client is never trusted.

The transition is an Order aggregate method committed under the optimistic
``_version`` check. Only the commit that lands raises side effects: the
``OrderPaid`` event (which clears the shopper's cart) and the optional
restock. A racing delivery fails its commit, re-reads the order and reports
a duplicate, so at-least-once delivery collapses into exactly-once effects.
"""

from enum import Enum

import structlog
from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError, InvalidStateError, ValidationError
from protean.utils.globals import current_domain

from catalogue.product.product import Product
from ordering.order.order import Order, PaymentStatus
from payments.gateway.port import SESSION_PAID, PaymentGateway
from shared.config import Settings

logger = structlog.get_logger(__name__)

SETTLED_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
FAILED_EVENTS = {"checkout.session.async_payment_failed", "checkout.session.expired"}


class ReconciliationOutcome(Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    UNKNOWN_SESSION = "unknown_session"
    CONFLICT = "conflict"
    IGNORED = "ignored"


class PaymentReconciler:
    def __init__(self, gateway: PaymentGateway, settings: Settings) -> None:
        self.gateway = gateway
        self.settings = settings

    @property
    def orders(self):
        return current_domain.repository_for(Order)

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    def handle_webhook(self, payload: bytes, signature: str) -> ReconciliationOutcome:
        """Verify and apply a processor webhook. Raises SignatureVerificationError on a bad signature."""
        event = self.gateway.construct_event(payload, signature)
        log = logger.bind(event_id=event.event_id, event_type=event.event_type, session_ref=event.session_id)

        if not event.session_id:
            log.info("Webhook event without a checkout session, ignoring")
            return ReconciliationOutcome.IGNORED

        order_hint = event.metadata.get("order_id")

        if event.event_type in SETTLED_EVENTS:
            if event.payment_status != SESSION_PAID:
                # Delayed payment methods complete the session before the money settles
                log.info("Checkout completed but payment not settled yet", payment_status=event.payment_status)
                return ReconciliationOutcome.IGNORED
            return self.handle_payment_confirmation(event.session_id, settled=True, order_hint=order_hint)

        if event.event_type in FAILED_EVENTS:
            return self.handle_payment_confirmation(event.session_id, settled=False, order_hint=order_hint)

        log.info("Unhandled webhook event type, acknowledging")
        return ReconciliationOutcome.IGNORED

    def confirm_payment(self, session_id: str) -> ReconciliationOutcome:
        """Client-initiated confirmation. Raises ValidationError unless the payment settled."""
        status = self.gateway.retrieve_session(session_id)
        order_hint = status.metadata.get("order_id")

        if status.is_paid:
            outcome = self.handle_payment_confirmation(session_id, settled=True, order_hint=order_hint)
            if outcome in (ReconciliationOutcome.APPLIED, ReconciliationOutcome.DUPLICATE):
                return outcome
            if outcome is ReconciliationOutcome.UNKNOWN_SESSION:
                raise ValidationError({"session_id": ["Order not found for payment session"]})
            raise ValidationError({"payment": ["Payment not completed"]})

        if status.is_expired:
            self.handle_payment_confirmation(session_id, settled=False, order_hint=order_hint)

        logger.info("Payment not completed", session_ref=session_id, payment_status=status.payment_status)
        raise ValidationError({"payment": ["Payment not completed"]})

    # -------------------------------------------------------------------
    # Idempotent transition
    # -------------------------------------------------------------------
    def handle_payment_confirmation(
        self,
        session_ref: str,
        settled: bool,
        order_hint: str | None = None,
    ) -> ReconciliationOutcome:
        """Move the order behind ``session_ref`` to its final payment state, once."""
        log = logger.bind(session_ref=session_ref, settled=settled)

        try:
            order, applied = self._transition(session_ref, settled, order_hint)
        except ExpectedVersionError:
            log.info("Concurrent update won the race, re-reading order")
            order, applied = self.orders.for_session(session_ref), False

        if order is None:
            log.warning("No order found for payment session")
            return ReconciliationOutcome.UNKNOWN_SESSION

        log = log.bind(order_id=str(order.id), owner=order.owner)

        if applied:
            log.info(
                "Payment reconciled",
                payment_status=order.payment_status,
                order_status=order.order_status,
            )
            return ReconciliationOutcome.APPLIED

        expected = PaymentStatus.COMPLETED.value if settled else PaymentStatus.FAILED.value
        if order.payment_status == expected:
            log.info("Duplicate payment confirmation, nothing to do")
            return ReconciliationOutcome.DUPLICATE

        log.warning(
            "Payment confirmation conflicts with order state",
            payment_status=order.payment_status,
            order_status=order.order_status,
        )
        return ReconciliationOutcome.CONFLICT

    def _transition(self, session_ref: str, settled: bool, order_hint: str | None) -> tuple[Order | None, bool]:
        with UnitOfWork():
            order = self.orders.for_session(session_ref)
            if order is None and order_hint:
                # The confirmation overtook the write that stores the session id
                order = self._adopt_session(order_hint, session_ref)
            if order is None:
                return None, False

            try:
                if settled:
                    order.confirm_payment()
                else:
                    order.fail_payment(cancel=self.settings.cancel_order_on_payment_failure)
            except InvalidStateError:
                return order, False

            self.orders.add(order)

            if not settled and self.settings.release_stock_on_payment_failure:
                products = current_domain.repository_for(Product)
                for item in order.items:
                    products.restore_stock(item.product_id, item.quantity)
        return order, True

    def _adopt_session(self, order_id: str, session_ref: str) -> Order | None:
        order = self.orders.get_or_none(str(order_id))
        if order is None:
            return None
        try:
            order.attach_payment_session(session_ref)
        except InvalidStateError:
            return None
        logger.info("Payment session attached from event metadata", order_id=order_id, session_ref=session_ref)
        return order
