"""Carts react to Order events: a paid order empties its owner's cart.

Guest carts are left alone; they are never tied to an account and expire
with the browser session. A failing signal is logged and swallowed so the
payment confirmation, already committed, still reports success.
"""

import structlog
from protean.utils.mixins import handle

from ordering.cart.cart import ShoppingCart
from ordering.order.events import OrderPaid
from ordering.order.order import is_guest_owner
from payments.reconciliation.cart_signal import current_cart_signal
from shared.domain import storefront

logger = structlog.get_logger(__name__)


@storefront.event_handler(part_of=ShoppingCart, stream_category="storefront::order")
class OrderCartEventHandler:
    @handle(OrderPaid)
    def on_order_paid(self, event: OrderPaid) -> None:
        log = logger.bind(order_id=str(event.order_id), owner=event.owner)
        if is_guest_owner(event.owner):
            log.info("Guest order paid, no cart to clear")
            return

        try:
            current_cart_signal().clear(event.owner)
        except Exception as exc:
            log.error("Failed to clear cart after payment", error=str(exc))
        else:
            log.info("Cart cleared after payment")
