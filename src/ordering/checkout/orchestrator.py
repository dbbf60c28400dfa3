"""Checkout orchestrator: turns a cart into a pending order and a hosted payment session.

Flow:
    1. Validate contact details (no storage access).
    2. Validate every line against the live catalogue: product exists, variant
       allowed, enough stock for the combined demand. Prices are read here.
    3. One transaction: insert the order (pending/pending) and apply one
       conditional stock decrement per product. Any rejected decrement rolls
       the whole transaction back.
    4. Open the hosted payment session. This is the first step that cannot be
       rolled back cheaply, so everything before it has been verified.
    5. Record the session id on the order and hand back the redirect URL.

If step 4 fails (processor error or timeout) the reservation is released: stock is
restored and the order is closed as cancelled/failed, in one transaction.
"""

from dataclasses import dataclass

import structlog
from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError, InvalidStateError, ValidationError
from protean.utils.globals import current_domain

from catalogue.product.product import Product
from ordering.order.contact import validate_contact
from ordering.order.order import Order, cents, line_display_name, new_guest_owner
from payments.gateway.port import PaymentGateway, SessionLineItem
from shared.config import Settings

logger = structlog.get_logger(__name__)

ATTACH_ATTEMPTS = 3


@dataclass(frozen=True)
class CheckoutLine:
    """A line as requested by the shopper. Prices never come from here."""

    product_id: str
    quantity: int
    flavor: str | None = None
    strength: int | None = None
    selected_image: str | None = None


@dataclass(frozen=True)
class PricedLine:
    """A line validated against the catalogue, with the price snapshot."""

    product_id: str
    product_name: str
    quantity: int
    flavor: str
    strength: int
    selected_image: str
    unit_price: float

    def as_item_data(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "selected_image": self.selected_image,
            "flavor": self.flavor,
            "strength": self.strength,
            "unit_price": self.unit_price,
        }

    def as_session_line(self) -> SessionLineItem:
        return SessionLineItem(
            name=line_display_name(self.product_name, self.strength, self.flavor),
            unit_amount=cents(self.unit_price),
            quantity=self.quantity,
            image=self.selected_image,
        )


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    owner: str
    session_id: str
    redirect_url: str
    total_amount: float


class CheckoutOrchestrator:
    def __init__(self, gateway: PaymentGateway, settings: Settings) -> None:
        self.gateway = gateway
        self.settings = settings

    def initiate_checkout(
        self,
        cart_owner: str | None,
        line_items: list[CheckoutLine],
        shipping_address: str | None,
        contact_email: str | None,
        contact_phone: str | None,
    ) -> CheckoutResult:
        if not line_items:
            raise ValidationError({"line_items": ["No products provided for checkout"]})
        for line in line_items:
            if line.quantity < 1:
                raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        contact = validate_contact(shipping_address, contact_email, contact_phone)
        owner = str(cart_owner) if cart_owner else new_guest_owner()

        priced_lines = self._validate_lines(line_items)
        demand = self._demand_by_product(priced_lines)

        order = self._reserve(owner, priced_lines, demand, contact)
        order_id = str(order.id)
        log = logger.bind(order_id=order_id, owner=owner)
        log.info("Order reserved", total_amount=order.total_amount, lines=len(priced_lines))

        try:
            session = self.gateway.create_session(
                line_items=[line.as_session_line() for line in priced_lines],
                success_url=self.settings.checkout_success_url,
                cancel_url=self.settings.checkout_cancel_url,
                metadata={"order_id": order_id, "owner": owner},
                customer_email=contact.email,
                idempotency_key=f"checkout-{order_id}",
            )
        except Exception:
            log.error("Payment session creation failed, releasing reservation")
            self._release(order_id, demand)
            raise

        self._attach_session(order_id, session.session_id)

        log.info("Payment session opened", session_id=session.session_id)
        return CheckoutResult(
            order_id=order_id,
            owner=owner,
            session_id=session.session_id,
            redirect_url=session.redirect_url,
            total_amount=order.total_amount,
        )

    # -------------------------------------------------------------------
    # Validation (read-only)
    # -------------------------------------------------------------------
    def _validate_lines(self, line_items: list[CheckoutLine]) -> list[PricedLine]:
        store = current_domain.repository_for(Product)
        priced_lines = []
        requested: dict[str, int] = {}

        for line in line_items:
            product = store.require(line.product_id)
            product_id = str(product.id)

            requested[product_id] = requested.get(product_id, 0) + line.quantity
            if product.stock < requested[product_id]:
                raise insufficient_stock(product)

            errors = product.variant_errors(line.flavor, line.strength)
            if errors:
                raise ValidationError({"variant": errors})

            priced_lines.append(
                PricedLine(
                    product_id=product_id,
                    product_name=product.name,
                    quantity=line.quantity,
                    flavor=line.flavor,
                    strength=int(line.strength),
                    selected_image=product.resolve_image(line.selected_image),
                    # Snapshot in whole cents so order lines, total and processor amounts agree
                    unit_price=cents(product.price) / 100,
                )
            )
        return priced_lines

    @staticmethod
    def _demand_by_product(priced_lines: list[PricedLine]) -> dict[str, int]:
        demand: dict[str, int] = {}
        for line in priced_lines:
            demand[line.product_id] = demand.get(line.product_id, 0) + line.quantity
        # Fixed lock order across concurrent checkouts
        return dict(sorted(demand.items()))

    # -------------------------------------------------------------------
    # Reservation
    # -------------------------------------------------------------------
    def _reserve(self, owner, priced_lines, demand, contact) -> Order:
        """Insert the order and take the stock, all or nothing."""
        store = current_domain.repository_for(Product)
        with UnitOfWork():
            order = Order.create(
                owner=owner,
                items_data=[line.as_item_data() for line in priced_lines],
                shipping_address=contact.shipping_address,
                contact_email=contact.email,
                contact_phone=contact.phone,
            )
            current_domain.repository_for(Order).add(order)

            for product_id, quantity in demand.items():
                if not store.take_stock(product_id, quantity):
                    product = store.require(product_id)
                    logger.info(
                        "Checkout lost stock race",
                        product_id=product_id,
                        requested=quantity,
                        available=product.stock,
                    )
                    raise insufficient_stock(product)
        return order

    def _attach_session(self, order_id: str, session_ref: str) -> None:
        orders = current_domain.repository_for(Order)
        for _ in range(ATTACH_ATTEMPTS):
            order = orders.require(order_id)
            try:
                # A fast webhook may already have attached it from the event metadata
                if order.attach_payment_session(session_ref):
                    orders.add(order)
                return
            except ExpectedVersionError:
                logger.info("Order changed while recording payment session, retrying", order_id=order_id)
        raise InvalidStateError("Could not record payment session for this order")

    def _release(self, order_id: str, demand) -> None:
        """Undo a reservation whose payment session could not be opened."""
        store = current_domain.repository_for(Product)
        orders = current_domain.repository_for(Order)
        try:
            with UnitOfWork():
                order = orders.require(order_id)
                if not order.is_awaiting_payment:
                    logger.warning("Reservation already settled, not releasing", order_id=order_id)
                    return
                order.abort()
                orders.add(order)
                for product_id, quantity in demand.items():
                    store.restore_stock(product_id, quantity)
        except ExpectedVersionError:
            logger.warning("Reservation settled concurrently, not releasing", order_id=order_id)
            return
        logger.info("Reservation released", order_id=order_id)


def insufficient_stock(product: Product) -> ValidationError:
    return ValidationError({"quantity": [f"Product {product.name} has only {product.stock} units in stock"]})
