"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String

from shared.domain import storefront


@storefront.event(part_of="Order")
class OrderPaid:
    """The processor confirmed payment and the order moved to processing."""

    __version__ = 1

    order_id = Identifier(required=True)
    owner = String(max_length=255, required=True)
    payment_session_ref = String(max_length=255, required=True, sanitize=False)
    total_amount = Float(required=True)
    paid_at = DateTime(required=True)
