"""Shopping cart aggregate: one cart per owner, one line per product variant.

The owner is an account id or a ``guest_`` identifier. The cart is read-only
input to checkout and only emptied after a confirmed payment or by the
shopper.
"""

from datetime import UTC, datetime

import structlog
from protean import invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from shared.domain import storefront

logger = structlog.get_logger(__name__)


@storefront.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    flavor = String(max_length=100, required=True)
    strength = Integer(required=True)
    selected_image = String(max_length=1024, sanitize=False)
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()

    def matches(self, product_id, flavor, strength) -> bool:
        return str(self.product_id) == str(product_id) and self.flavor == flavor and self.strength == int(strength)


@storefront.aggregate
class ShoppingCart:
    owner = String(max_length=255, required=True, unique=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def one_line_per_variant(self):
        variants = [(str(item.product_id), item.flavor, item.strength) for item in self.items]
        if len(variants) != len(set(variants)):
            raise ValidationError({"items": ["A product variant may only appear once in a cart"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, owner):
        now = datetime.now(UTC)
        return cls(owner=str(owner), created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    @property
    def lines(self) -> list[CartItem]:
        return sorted(self.items, key=lambda item: item.added_at)

    def line_for(self, product_id, flavor, strength) -> CartItem | None:
        return next((item for item in self.items if item.matches(product_id, flavor, strength)), None)

    def add_item(self, product_id, flavor, strength, selected_image, quantity) -> CartItem:
        """Add ``quantity`` units of a variant, creating the line if needed."""
        now = datetime.now(UTC)
        line = self.line_for(product_id, flavor, strength)
        if line is not None:
            line.quantity += quantity
        else:
            line = CartItem(
                product_id=product_id,
                flavor=flavor,
                strength=int(strength),
                selected_image=selected_image,
                quantity=quantity,
                added_at=now,
            )
            self.add_items(line)
        self.updated_at = now
        return line

    def remove_item(self, product_id, flavor, strength, quantity=1) -> None:
        """Take ``quantity`` units off a line; the line disappears at zero."""
        line = self.line_for(product_id, flavor, strength) if strength is not None else None
        if line is None:
            raise ValidationError({"item": ["Item not found in cart"]})

        if line.quantity > quantity:
            line.quantity -= quantity
        else:
            self.remove_items(line)
        self.updated_at = datetime.now(UTC)

    def clear(self) -> int:
        count = len(self.items)
        if count:
            self.remove_items(list(self.items))
            self.updated_at = datetime.now(UTC)
        return count

    def merge(self, other: "ShoppingCart") -> int:
        """Fold another cart's lines into this one, summing matching variants."""
        items_merged = 0
        for item in other.lines:
            self.add_item(item.product_id, item.flavor, item.strength, item.selected_image, item.quantity)
            items_merged += 1
        return items_merged


@storefront.repository(part_of=ShoppingCart)
class CartRepository:
    def for_owner(self, owner: str) -> ShoppingCart | None:
        try:
            return self.find_by(owner=str(owner))
        except ObjectNotFoundError:
            return None

    def discard(self, cart: ShoppingCart) -> None:
        cart.clear()
        self.add(cart)
        self._dao.delete(cart)
        logger.info("Cart discarded", owner=cart.owner)
