import pytest

from ordering.checkout.orchestrator import CheckoutOrchestrator

VALID_CONTACT = {
    "shipping_address": "12 Harbour Road, Leith, Edinburgh EH6 6LX",
    "contact_email": "shopper@example.com",
    "contact_phone": "+447700900123",
}


@pytest.fixture()
def orchestrator(gateway, settings):
    return CheckoutOrchestrator(gateway, settings)


@pytest.fixture()
def checkout(orchestrator):
    """Run a checkout with valid contact details unless overridden."""

    def _checkout(owner, lines, **overrides):
        contact = {**VALID_CONTACT, **overrides}
        return orchestrator.initiate_checkout(owner, lines, **contact)

    return _checkout
