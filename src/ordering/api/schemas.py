"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
internal checkout and cart types. Contact fields are optional here so that
missing values reach business validation and come back as a descriptive 400
rather than a generic schema error.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CheckoutItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1, default=1)
    flavor: str | None = None
    strength: int | None = None
    selected_image: str | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    customer_id: str | None = None
    line_items: list[CheckoutItemSchema] = Field(default_factory=list)
    shipping_address: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "line_items": [
                        {
                            "product_id": "prod-001",
                            "quantity": 2,
                            "flavor": "Mint",
                            "strength": 6,
                            "selected_image": "https://cdn.example.com/prod-001/mint.png",
                        }
                    ],
                    "shipping_address": "12 Harbour Road, Leith, Edinburgh EH6 6LX",
                    "contact_email": "shopper@example.com",
                    "contact_phone": "+447700900123",
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    url: str
    order_id: str
    session_id: str
    total_amount: float


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    flavor: str
    strength: int
    selected_image: str | None = None
    quantity: int = Field(ge=1, default=1)


class RemoveFromCartRequest(BaseModel):
    product_id: str
    flavor: str
    strength: int
    quantity: int = Field(ge=1, default=1)


class MergeGuestCartRequest(BaseModel):
    guest_owner: str


class CartLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    flavor: str
    strength: int
    selected_image: str | None = None
    quantity: int


class CartResponse(BaseModel):
    owner: str
    items: list[CartLineResponse]


class ClearCartResponse(BaseModel):
    owner: str
    cleared: int


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    product_name: str
    quantity: int
    selected_image: str | None = None
    flavor: str
    strength: int
    unit_price: float


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    owner: str
    items: list[OrderItemResponse]
    total_amount: float
    shipping_address: str
    contact_email: str
    contact_phone: str
    order_status: str
    payment_status: str
    payment_session_ref: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: str


class StatusResponse(BaseModel):
    status: str = "ok"
