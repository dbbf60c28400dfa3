import pytest

from ordering.checkout.orchestrator import CheckoutLine, CheckoutOrchestrator
from payments.reconciliation.reconciler import PaymentReconciler


@pytest.fixture()
def reconciler(gateway, cart_signal, settings):
    return PaymentReconciler(gateway, settings)


@pytest.fixture()
def place_order(gateway, settings, add_product):
    """Check out one line and return (result, product_id)."""

    def _place(owner="cust-001", quantity=2, stock=10, price=5.00):
        product_id = add_product(stock=stock, price=price)
        result = CheckoutOrchestrator(gateway, settings).initiate_checkout(
            owner,
            [CheckoutLine(product_id=product_id, quantity=quantity, flavor="Mint", strength=6)],
            shipping_address="1 Market Street, Leeds LS1 6DT",
            contact_email="buyer@example.com",
            contact_phone="+447700900456",
        )
        return result, product_id

    return _place
