"""Integration tests for webhook intake, payment confirmation and gateway configuration."""

import pytest
from fastapi.testclient import TestClient

from protean.utils.globals import current_domain

from app import create_app
from ordering.order.order import Order
from shared.config import Settings


def _place_order(client, product_id, customer_id="cust-001"):
    response = client.post(
        "/checkout",
        json={
            "customer_id": customer_id,
            "line_items": [{"product_id": product_id, "quantity": 1, "flavor": "Mint", "strength": 6}],
            "shipping_address": "1 Market Street, Leeds LS1 6DT",
            "contact_email": "buyer@example.com",
            "contact_phone": "+447700900456",
        },
    )
    return response.json()


def _order(order_id):
    return current_domain.repository_for(Order).require(order_id)


class TestPaymentWebhookAPI:
    def test_signed_completion_marks_order_paid(self, client, gateway, cart_signal, add_product):
        placed = _place_order(client, add_product())
        gateway.complete_session(placed["session_id"])
        payload = gateway.build_event("checkout.session.completed", placed["session_id"])

        response = client.post(
            "/payment-webhook",
            content=payload,
            headers={"Stripe-Signature": gateway.sign(payload), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "applied"}
        order = _order(placed["order_id"])
        assert order.payment_status == "completed"
        assert order.order_status == "processing"
        assert cart_signal.cleared == ["cust-001"]

    def test_redelivery_is_acknowledged(self, client, gateway, cart_signal, add_product):
        placed = _place_order(client, add_product())
        gateway.complete_session(placed["session_id"])
        payload = gateway.build_event("checkout.session.completed", placed["session_id"])
        headers = {"Stripe-Signature": gateway.sign(payload)}

        client.post("/payment-webhook", content=payload, headers=headers)
        response = client.post("/payment-webhook", content=payload, headers=headers)

        assert response.status_code == 200
        assert response.json()["outcome"] == "duplicate"
        assert cart_signal.cleared == ["cust-001"]

    def test_bad_signature_is_400(self, client, gateway, add_product):
        placed = _place_order(client, add_product())
        gateway.complete_session(placed["session_id"])
        payload = gateway.build_event("checkout.session.completed", placed["session_id"])

        response = client.post("/payment-webhook", content=payload, headers={"Stripe-Signature": "forged"})

        assert response.status_code == 400
        assert response.json()["error"] == {"signature": ["Webhook signature verification failed"]}
        assert _order(placed["order_id"]).payment_status == "pending"

    def test_missing_signature_is_400(self, client):
        response = client.post("/payment-webhook", content=b'{"type": "checkout.session.completed"}')
        assert response.status_code == 400

    def test_unknown_session_is_acknowledged(self, client, gateway):
        session = gateway.create_session(line_items=[], success_url="http://s", cancel_url="http://c", metadata={})
        gateway.complete_session(session.session_id)
        payload = gateway.build_event("checkout.session.completed", session.session_id)

        response = client.post("/payment-webhook", content=payload, headers={"Stripe-Signature": gateway.sign(payload)})

        assert response.status_code == 200
        assert response.json()["outcome"] == "unknown_session"


class TestPaymentConfirmAPI:
    def test_paid_session(self, client, gateway, add_product):
        placed = _place_order(client, add_product())
        gateway.complete_session(placed["session_id"])

        response = client.post("/payment-confirm", json={"session_id": placed["session_id"]})

        assert response.status_code == 200
        assert response.json() == {"success": True, "outcome": "applied"}
        assert _order(placed["order_id"]).is_paid

    def test_unpaid_session_is_400(self, client, add_product):
        placed = _place_order(client, add_product())

        response = client.post("/payment-confirm", json={"session_id": placed["session_id"]})

        assert response.status_code == 400
        assert response.json()["error"] == {"payment": ["Payment not completed"]}

    def test_processor_failure_is_502(self, client, gateway, add_product):
        placed = _place_order(client, add_product())
        gateway.configure(should_succeed=False)

        response = client.post("/payment-confirm", json={"session_id": placed["session_id"]})

        assert response.status_code == 502
        assert response.json()["error"] == "Payment processor unavailable"


class TestGatewayConfigureAPI:
    def test_configure_fake_gateway(self, client, gateway):
        response = client.post(
            "/payments/gateway/configure", json={"should_succeed": False, "failure_reason": "Card network down"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "gateway": "FakeGateway",
            "should_succeed": False,
            "failure_reason": "Card network down",
        }
        assert gateway.should_succeed is False

    @pytest.fixture()
    def production_client(self, database_url, gateway, cart_signal):
        settings = Settings(environment="production", database_url=database_url)
        app = create_app(settings=settings, gateway=gateway, cart_signal=cart_signal)
        with TestClient(app) as test_client:
            yield test_client

    def test_refused_in_production(self, production_client):
        response = production_client.post("/payments/gateway/configure", json={"should_succeed": False})

        assert response.status_code == 403
        assert "error" in response.json()


class TestHealthAPI:
    def test_health(self, client):
        response = client.get("/health")
        assert response.json()["status"] == "ok"
        assert response.json()["payment_gateway"] == "FakeGateway"
