"""Order aggregate: the record of one checkout and its lifecycle.

An order is born ``pending/pending`` together with the stock it reserves.
Line items snapshot the catalogue price at that moment; the total is derived
from the snapshot once and never recomputed from live prices.

Order status:
    PENDING → PROCESSING (payment confirmed, reconciler only)
    any of the five statuses (admin)
    PENDING → CANCELLED (system, when the payment fails or cannot be opened)

Payment status:
    PENDING → COMPLETED | FAILED (never reversed)
"""

import math
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean.exceptions import InvalidStateError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from ordering.order.events import OrderPaid
from shared.domain import storefront

GUEST_PREFIX = "guest_"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


def new_guest_owner() -> str:
    return f"{GUEST_PREFIX}{uuid4()}"


def is_guest_owner(owner: str) -> bool:
    return str(owner).startswith(GUEST_PREFIX)


def cents(amount: float) -> int:
    """Whole cents, halves rounded up as the payment processor expects."""
    return int(math.floor(amount * 100 + 0.5))


def line_display_name(product_name: str, strength, flavor: str) -> str:
    """Label shown to the shopper for one product variant."""
    return f"{product_name} ({strength} mg, {flavor})"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """A line item snapshot: which product variant, how many, at what price."""

    position = Integer(required=True, min_value=0)
    product_id = Identifier(required=True)
    product_name = String(max_length=255, required=True)
    quantity = Integer(required=True, min_value=1)
    selected_image = String(max_length=1024, sanitize=False)
    flavor = String(max_length=100, required=True)
    strength = Integer(required=True)
    unit_price = Float(required=True, min_value=0)

    @property
    def line_total(self) -> float:
        return cents(self.unit_price) * self.quantity / 100


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    owner = String(max_length=255, required=True)
    items = HasMany(OrderItem)
    total_amount = Float(required=True, min_value=0)
    shipping_address = Text(required=True)
    contact_email = String(max_length=254, required=True)
    contact_phone = String(max_length=20, required=True)
    order_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_session_ref = String(max_length=255, unique=True, sanitize=False)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner, items_data, shipping_address, contact_email, contact_phone):
        """Create a pending order from validated checkout data.

        Args:
            owner: Account id, or a ``guest_`` identifier.
            items_data: List of dicts with product_id, product_name, quantity,
                        selected_image, flavor, strength, unit_price.
        """
        now = datetime.now(UTC)
        items = [OrderItem(position=position, **item) for position, item in enumerate(items_data)]
        order = cls(
            owner=str(owner),
            total_amount=sum(cents(item.unit_price) * item.quantity for item in items) / 100,
            shipping_address=shipping_address,
            contact_email=contact_email,
            contact_phone=contact_phone,
            order_status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        order.add_items(items)
        return order

    @property
    def lines(self) -> list[OrderItem]:
        return sorted(self.items, key=lambda item: item.position)

    def computed_total(self) -> float:
        """Total from the snapshot, summed in cents to avoid float drift."""
        return sum(cents(item.unit_price) * item.quantity for item in self.items) / 100

    @property
    def is_guest(self) -> bool:
        return is_guest_owner(self.owner)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED.value

    @property
    def is_deletable(self) -> bool:
        """Unpaid pending orders may be removed as administrative cleanup."""
        return self.order_status == OrderStatus.PENDING.value and not self.is_paid

    @property
    def is_awaiting_payment(self) -> bool:
        return (
            self.payment_status == PaymentStatus.PENDING.value and self.order_status == OrderStatus.PENDING.value
        )

    # -------------------------------------------------------------------
    # Payment lifecycle
    # -------------------------------------------------------------------
    def attach_payment_session(self, session_ref: str) -> bool:
        """Record the processor session. Returns False when it is already recorded."""
        if self.payment_session_ref == session_ref:
            return False
        if self.payment_session_ref:
            raise InvalidStateError("Payment session already recorded for this order")
        self.payment_session_ref = session_ref
        self.updated_at = datetime.now(UTC)
        return True

    def confirm_payment(self) -> None:
        """pending → completed, order → processing."""
        if not self.is_awaiting_payment:
            raise InvalidStateError("Order is not awaiting payment")

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.COMPLETED.value
        self.order_status = OrderStatus.PROCESSING.value
        self.updated_at = now

        self.raise_(
            OrderPaid(
                order_id=str(self.id),
                owner=self.owner,
                payment_session_ref=self.payment_session_ref,
                total_amount=self.total_amount,
                paid_at=now,
            )
        )

    def fail_payment(self, cancel: bool = False) -> None:
        """pending → failed; the order is cancelled too when ``cancel`` is set."""
        if self.payment_status != PaymentStatus.PENDING.value:
            raise InvalidStateError("Payment is already settled")

        self.payment_status = PaymentStatus.FAILED.value
        if cancel:
            self.order_status = OrderStatus.CANCELLED.value
        self.updated_at = datetime.now(UTC)

    def abort(self) -> None:
        """Close an order whose payment session could never be opened."""
        if not self.is_awaiting_payment:
            raise InvalidStateError("Only orders awaiting payment can be aborted")

        self.payment_status = PaymentStatus.FAILED.value
        self.order_status = OrderStatus.CANCELLED.value
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def change_status(self, status: str) -> None:
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError({"status": ["Invalid status"]}) from None
        self.order_status = target.value
        self.updated_at = datetime.now(UTC)
