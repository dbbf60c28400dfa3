"""Application tests for checkout: validation, reservation and payment session handoff."""

from concurrent.futures import ThreadPoolExecutor

import pytest
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from catalogue.product.product import Product
from ordering.checkout.orchestrator import CheckoutLine
from ordering.order.order import Order, OrderStatus, PaymentStatus
from shared.domain import storefront
from shared.errors import PaymentGatewayError


def _line(product_id, quantity=1, flavor="Mint", strength=6, selected_image=None):
    return CheckoutLine(
        product_id=product_id,
        quantity=quantity,
        flavor=flavor,
        strength=strength,
        selected_image=selected_image,
    )


def _order_count():
    return len(current_domain.repository_for(Order).history())


def _get_order(order_id):
    return current_domain.repository_for(Order).require(order_id)


def _set_price(product_id, price):
    products = current_domain.repository_for(Product)
    product = products.get(product_id)
    product.price = price
    products.add(product)


class TestSuccessfulCheckout:
    def test_creates_pending_order_and_reserves_stock(self, checkout, add_product, stock_of):
        product_id = add_product(stock=10, price=5.00)

        result = checkout("cust-001", [_line(product_id, quantity=3)])

        order = _get_order(result.order_id)
        assert order.order_status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value
        assert order.payment_session_ref == result.session_id
        assert order.owner == "cust-001"
        assert order.total_amount == 15.00
        assert stock_of(product_id) == 7

    def test_returns_redirect_url(self, checkout, add_product):
        result = checkout("cust-001", [_line(add_product())])
        assert result.redirect_url == f"https://checkout.fake.local/pay/{result.session_id}"

    def test_session_lines_use_catalogue_prices(self, checkout, add_product, gateway):
        product_id = add_product(name="Arctic Mint", price=6.49)

        checkout("cust-001", [_line(product_id, quantity=2, flavor="Spearmint", strength=12)])

        call = gateway.calls[-1]
        (session_line,) = call["line_items"]
        assert session_line.name == "Arctic Mint (12 mg, Spearmint)"
        assert session_line.unit_amount == 649
        assert session_line.quantity == 2

    def test_sub_cent_price_is_snapshotted_in_whole_cents(self, checkout, add_product, gateway):
        product_id = add_product(price=0.125)

        result = checkout("cust-001", [_line(product_id, quantity=4)])

        order = _get_order(result.order_id)
        (item,) = order.lines
        (session_line,) = gateway.calls[-1]["line_items"]
        assert item.unit_price == 0.13
        assert session_line.unit_amount == 13
        assert order.total_amount == 0.52
        assert order.total_amount == result.total_amount
        assert sum(line.line_total for line in order.lines) == order.total_amount
        assert session_line.unit_amount * session_line.quantity == round(order.total_amount * 100)

    def test_session_metadata_and_idempotency_key(self, checkout, add_product, gateway, settings):
        result = checkout("cust-001", [_line(add_product())])

        call = gateway.calls[-1]
        assert call["metadata"] == {"order_id": result.order_id, "owner": "cust-001"}
        assert call["idempotency_key"] == f"checkout-{result.order_id}"
        assert call["customer_email"] == "shopper@example.com"
        assert call["success_url"] == settings.checkout_success_url

    def test_guest_checkout_gets_guest_owner(self, checkout, add_product):
        result = checkout(None, [_line(add_product())])

        assert result.owner.startswith("guest_")
        assert _get_order(result.order_id).is_guest

    def test_foreign_image_is_replaced_by_product_image(self, checkout, add_product):
        product_id = add_product(name="Citrus", images=["https://cdn.example.com/citrus.png"])

        result = checkout("cust-001", [_line(product_id, selected_image="https://evil.example.com/x.png")])

        order = _get_order(result.order_id)
        assert order.lines[0].selected_image == "https://cdn.example.com/citrus.png"

    def test_later_price_change_does_not_touch_order(self, checkout, add_product):
        product_id = add_product(price=5.00)
        result = checkout("cust-001", [_line(product_id, quantity=2)])

        _set_price(product_id, 99.00)

        order = _get_order(result.order_id)
        assert order.total_amount == 10.00
        assert order.lines[0].unit_price == 5.00

    def test_repeated_product_lines_are_reserved_together(self, checkout, add_product, stock_of):
        product_id = add_product(stock=5)

        checkout("cust-001", [_line(product_id, quantity=2, flavor="Mint"), _line(product_id, flavor="Spearmint")])

        assert stock_of(product_id) == 2


class TestRejectedCheckout:
    def test_no_lines(self, checkout):
        with pytest.raises(ValidationError) as exc:
            checkout("cust-001", [])
        assert exc.value.messages == {"line_items": ["No products provided for checkout"]}

    def test_zero_quantity(self, checkout, add_product):
        with pytest.raises(ValidationError):
            checkout("cust-001", [_line(add_product(), quantity=0)])

    def test_invalid_contact_touches_nothing(self, checkout, add_product, stock_of, gateway):
        product_id = add_product(stock=10)

        with pytest.raises(ValidationError) as exc:
            checkout("cust-001", [_line(product_id)], contact_email="not-an-email")

        assert exc.value.messages == {"contact_email": ["Invalid email address"]}
        assert stock_of(product_id) == 10
        assert _order_count() == 0
        assert gateway.calls == []

    def test_unknown_product(self, checkout):
        with pytest.raises(ValidationError) as exc:
            checkout("cust-001", [_line("missing-product")])
        assert exc.value.messages == {"product_id": ["Product with ID missing-product not found"]}

    def test_insufficient_stock(self, checkout, add_product, stock_of):
        product_id = add_product(name="Arctic Mint", stock=1)

        with pytest.raises(ValidationError) as exc:
            checkout("cust-001", [_line(product_id, quantity=2)])

        assert exc.value.messages == {"quantity": ["Product Arctic Mint has only 1 units in stock"]}
        assert stock_of(product_id) == 1
        assert _order_count() == 0

    def test_combined_demand_over_stock(self, checkout, add_product, stock_of):
        product_id = add_product(stock=3)

        with pytest.raises(ValidationError):
            checkout("cust-001", [_line(product_id, quantity=2), _line(product_id, quantity=2, flavor="Spearmint")])

        assert stock_of(product_id) == 3

    def test_invalid_variant(self, checkout, add_product, gateway):
        product_id = add_product(name="Arctic Mint")

        with pytest.raises(ValidationError) as exc:
            checkout("cust-001", [_line(product_id, flavor="Cherry")])

        assert exc.value.messages == {"variant": ["Invalid flavor for Arctic Mint"]}
        assert _order_count() == 0
        assert gateway.calls == []


class TestAllOrNothingReservation:
    def test_lost_race_on_second_product_restores_first(self, orchestrator, checkout, add_product, stock_of, monkeypatch):
        first = add_product(name="Alpha", stock=5)
        second = add_product(name="Beta", stock=5)
        validate = orchestrator._validate_lines

        def validate_then_drain(lines):
            priced = validate(lines)
            # Another shopper buys the remaining Beta stock in between
            current_domain.repository_for(Product).take_stock(second, 5)
            return priced

        monkeypatch.setattr(orchestrator, "_validate_lines", validate_then_drain)

        with pytest.raises(ValidationError) as exc:
            checkout("cust-001", [_line(first, quantity=2), _line(second, quantity=1)])

        assert exc.value.messages == {"quantity": ["Product Beta has only 0 units in stock"]}
        assert stock_of(first) == 5
        assert stock_of(second) == 0
        assert _order_count() == 0


class TestPaymentSessionFailure:
    def test_gateway_failure_releases_reservation(self, checkout, add_product, stock_of, gateway):
        product_id = add_product(stock=4)
        gateway.configure(should_succeed=False, failure_reason="Processor timeout")

        with pytest.raises(PaymentGatewayError):
            checkout("cust-001", [_line(product_id, quantity=3)])

        assert stock_of(product_id) == 4
        (order,) = current_domain.repository_for(Order).history()
        assert order.order_status == OrderStatus.CANCELLED.value
        assert order.payment_status == PaymentStatus.FAILED.value
        assert order.payment_session_ref is None


class TestConcurrentCheckout:
    def test_last_units_are_never_oversold(self, checkout, add_product, stock_of):
        product_id = add_product(stock=5)

        def attempt(index):
            with storefront.domain_context():
                try:
                    checkout(f"cust-{index}", [_line(product_id)])
                except ValidationError:
                    return False
                return True

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(attempt, range(12)))

        assert outcomes.count(True) == 5
        assert stock_of(product_id) == 0
        assert _order_count() == 5
