"""Cart management: add, remove, list, clear and guest merge."""

import structlog
from protean import UnitOfWork
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from catalogue.product.product import Product
from ordering.cart.cart import CartItem, ShoppingCart

logger = structlog.get_logger(__name__)


class CartService:
    @property
    def carts(self):
        return current_domain.repository_for(ShoppingCart)

    def list_items(self, owner: str) -> list[CartItem]:
        cart = self.carts.for_owner(owner)
        return cart.lines if cart is not None else []

    def add_item(self, owner, product_id, flavor, strength, selected_image=None, quantity=1) -> list[CartItem]:
        """Add ``quantity`` units of a product variant, creating the line if needed."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        product = current_domain.repository_for(Product).require(product_id)

        errors = product.variant_errors(flavor, strength)
        if selected_image and selected_image not in (product.images or []):
            errors.append("Invalid color variant selected")
        if errors:
            raise ValidationError({"variant": errors})

        cart = self.carts.for_owner(owner) or ShoppingCart.create(owner)
        line = cart.add_item(product.id, flavor, strength, product.resolve_image(selected_image), quantity)
        self.carts.add(cart)

        logger.info("Cart item added", owner=str(owner), product_id=product.id, quantity=line.quantity)
        return cart.lines

    def remove_item(self, owner, product_id, flavor, strength, quantity=1) -> list[CartItem]:
        cart = self.carts.for_owner(owner)
        if cart is None:
            raise ValidationError({"item": ["Item not found in cart"]})

        cart.remove_item(product_id, flavor, strength, quantity)
        self.carts.add(cart)

        logger.info("Cart item removed", owner=str(owner), product_id=str(product_id))
        return cart.lines

    def clear(self, owner: str) -> int:
        cart = self.carts.for_owner(owner)
        cleared = cart.clear() if cart is not None else 0
        if cleared:
            self.carts.add(cart)
        logger.info("Cart cleared", owner=str(owner), lines=cleared)
        return cleared

    def merge_guest_cart(self, guest_owner: str, owner: str) -> list[CartItem]:
        """Fold a guest cart into an account cart, summing matching lines."""
        if str(guest_owner) == str(owner):
            return self.list_items(owner)

        with UnitOfWork():
            guest_cart = self.carts.for_owner(guest_owner)
            cart = self.carts.for_owner(owner) or ShoppingCart.create(owner)
            items_merged = cart.merge(guest_cart) if guest_cart is not None else 0
            self.carts.add(cart)
            if guest_cart is not None:
                self.carts.discard(guest_cart)

        logger.info("Guest cart merged", guest_owner=guest_owner, owner=str(owner), items_merged=items_merged)
        return cart.lines
