"""Pydantic request/response schemas for the Payments API.

Webhook bodies have no schema: the processor signs the raw bytes, so
the webhook route reads them untouched instead of going through a model.
"""

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class ConfirmPaymentRequest(BaseModel):
    session_id: str

    model_config = {"json_schema_extra": {"examples": [{"session_id": "cs_test_a1b2c3"}]}}


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Payment processor unavailable"


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class WebhookAckResponse(BaseModel):
    received: bool = True
    outcome: str


class ConfirmPaymentResponse(BaseModel):
    success: bool = True
    outcome: str


class GatewayConfigResponse(BaseModel):
    gateway: str
    should_succeed: bool
    failure_reason: str
