"""FastAPI routes for the Payments domain: webhook intake and payment confirmation."""

from fastapi import APIRouter, Header, Request
from protean.exceptions import ValidationError
from starlette.concurrency import run_in_threadpool

from payments.api.schemas import (
    ConfigureGatewayRequest,
    ConfirmPaymentRequest,
    ConfirmPaymentResponse,
    GatewayConfigResponse,
    WebhookAckResponse,
)
from payments.gateway.fake_adapter import FakeGateway
from shared.errors import ForbiddenError

payment_router = APIRouter(tags=["payments"])


@payment_router.post("/payment-webhook", response_model=WebhookAckResponse)
async def payment_webhook(
    request: Request,
    stripe_signature: str = Header(default=""),
) -> WebhookAckResponse:
    """Receive a processor webhook. The signature covers the raw body, so it is read as bytes."""
    payload = await request.body()
    outcome = await run_in_threadpool(
        request.app.state.reconciler.handle_webhook,
        payload,
        stripe_signature,
    )
    return WebhookAckResponse(outcome=outcome.value)


@payment_router.post("/payment-confirm", response_model=ConfirmPaymentResponse)
async def confirm_payment(body: ConfirmPaymentRequest, request: Request) -> ConfirmPaymentResponse:
    """Confirm a payment after the shopper returns from the hosted page."""
    outcome = await run_in_threadpool(request.app.state.reconciler.confirm_payment, body.session_id)
    return ConfirmPaymentResponse(outcome=outcome.value)


@payment_router.post("/payments/gateway/configure", response_model=GatewayConfigResponse)
async def configure_gateway(body: ConfigureGatewayRequest, request: Request) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only).

    Lets manual API testing toggle whether session creation succeeds.
    """
    if request.app.state.settings.is_production:
        raise ForbiddenError("Gateway configuration not available in production")

    gateway = request.app.state.gateway
    if not isinstance(gateway, FakeGateway):
        raise ValidationError({"gateway": ["Gateway configuration only available for FakeGateway"]})

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
    )
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )
