"""FastAPI endpoints for the Ordering domain.

Routes are thin: they translate the HTTP payload into service calls and run
the blocking repository work off the event loop. Shared services (gateway,
orchestrator, settings) live on ``app.state``.
"""

import structlog
from fastapi import APIRouter, Header, Request
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from starlette.concurrency import run_in_threadpool

from ordering.api.schemas import (
    AddToCartRequest,
    CartLineResponse,
    CartResponse,
    CheckoutRequest,
    CheckoutResponse,
    ClearCartResponse,
    MergeGuestCartRequest,
    OrderItemResponse,
    OrderResponse,
    RemoveFromCartRequest,
    StatusResponse,
    UpdateOrderStatusRequest,
)
from ordering.cart.management import CartService
from ordering.checkout.orchestrator import CheckoutLine
from ordering.order.order import Order
from shared.errors import AuthenticationError

logger = structlog.get_logger(__name__)

checkout_router = APIRouter(tags=["checkout"])
cart_router = APIRouter(prefix="/carts", tags=["carts"])
internal_router = APIRouter(prefix="/internal", tags=["internal"])
order_router = APIRouter(prefix="/orders", tags=["orders"])


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
@checkout_router.post("/checkout", response_model=CheckoutResponse)
async def checkout(body: CheckoutRequest, request: Request) -> CheckoutResponse:
    lines = [
        CheckoutLine(
            product_id=item.product_id,
            quantity=item.quantity,
            flavor=item.flavor,
            strength=item.strength,
            selected_image=item.selected_image,
        )
        for item in body.line_items
    ]
    result = await run_in_threadpool(
        request.app.state.orchestrator.initiate_checkout,
        body.customer_id,
        lines,
        body.shipping_address,
        body.contact_email,
        body.contact_phone,
    )
    return CheckoutResponse(
        url=result.redirect_url,
        order_id=result.order_id,
        session_id=result.session_id,
        total_amount=result.total_amount,
    )


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
def _cart_response(owner: str, lines) -> CartResponse:
    return CartResponse(owner=owner, items=[CartLineResponse.model_validate(line) for line in lines])


def _get_cart(owner: str) -> CartResponse:
    return _cart_response(owner, CartService().list_items(owner))


def _add_to_cart(owner: str, body: AddToCartRequest) -> CartResponse:
    lines = CartService().add_item(
        owner,
        body.product_id,
        body.flavor,
        body.strength,
        selected_image=body.selected_image,
        quantity=body.quantity,
    )
    return _cart_response(owner, lines)


def _remove_from_cart(owner: str, body: RemoveFromCartRequest) -> CartResponse:
    lines = CartService().remove_item(owner, body.product_id, body.flavor, body.strength, quantity=body.quantity)
    return _cart_response(owner, lines)


def _clear_cart(owner: str) -> ClearCartResponse:
    return ClearCartResponse(owner=owner, cleared=CartService().clear(owner))


def _merge_cart(guest_owner: str, owner: str) -> CartResponse:
    return _cart_response(owner, CartService().merge_guest_cart(guest_owner, owner))


@cart_router.get("/{owner}", response_model=CartResponse)
async def get_cart(owner: str) -> CartResponse:
    return await run_in_threadpool(_get_cart, owner)


@cart_router.post("/{owner}/items", response_model=CartResponse, status_code=201)
async def add_to_cart(owner: str, body: AddToCartRequest) -> CartResponse:
    return await run_in_threadpool(_add_to_cart, owner, body)


@cart_router.post("/{owner}/items/remove", response_model=CartResponse)
async def remove_from_cart(owner: str, body: RemoveFromCartRequest) -> CartResponse:
    return await run_in_threadpool(_remove_from_cart, owner, body)


@cart_router.delete("/{owner}", response_model=ClearCartResponse)
async def clear_cart(owner: str) -> ClearCartResponse:
    return await run_in_threadpool(_clear_cart, owner)


@cart_router.post("/{owner}/merge", response_model=CartResponse)
async def merge_guest_cart(owner: str, body: MergeGuestCartRequest, request: Request) -> CartResponse:
    if not request.app.state.settings.merge_guest_carts:
        raise ValidationError({"guest_owner": ["Guest cart merging is disabled"]})
    return await run_in_threadpool(_merge_cart, body.guest_owner, owner)


# ---------------------------------------------------------------------------
# Internal: called by the payment side once an order is paid
# ---------------------------------------------------------------------------
@internal_router.post("/carts/{owner}/clear", response_model=ClearCartResponse)
async def internal_clear_cart(
    owner: str,
    request: Request,
    authorization: str = Header(default=""),
) -> ClearCartResponse:
    token = request.app.state.settings.internal_api_token
    if not token or authorization != f"Bearer {token}":
        raise AuthenticationError("Invalid internal token")
    return await run_in_threadpool(_clear_cart, owner)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
def _order_response(order) -> OrderResponse:
    response = OrderResponse.model_validate(order)
    response.items = [OrderItemResponse.model_validate(item) for item in order.lines]
    return response


def _list_orders(owner: str | None) -> list[OrderResponse]:
    return [_order_response(o) for o in current_domain.repository_for(Order).history(owner=owner)]


def _get_order(order_id: str) -> OrderResponse:
    return _order_response(current_domain.repository_for(Order).require(order_id))


def _update_order_status(order_id: str, status: str) -> OrderResponse:
    orders = current_domain.repository_for(Order)
    order = orders.require(order_id)
    order.change_status(status)
    orders.add(order)
    logger.info("Order status updated", order_id=order_id, order_status=order.order_status)
    return _order_response(order)


def _delete_order(order_id: str) -> None:
    current_domain.repository_for(Order).discard(order_id)


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(owner: str | None = None) -> list[OrderResponse]:
    return await run_in_threadpool(_list_orders, owner)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str) -> OrderResponse:
    return await run_in_threadpool(_get_order, order_id)


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> OrderResponse:
    return await run_in_threadpool(_update_order_status, order_id, body.status)


@order_router.delete("/{order_id}", response_model=StatusResponse)
async def delete_order(order_id: str) -> StatusResponse:
    await run_in_threadpool(_delete_order, order_id)
    return StatusResponse()
