"""Cart store: per-user cart operations backed by the catalog.

``CartService`` validates input, asks the catalog for the current price and
stock, and hands the mutation to ``CartRepository.mutate`` so the
read-modify-write is atomic per cart.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from apps.catalog.domain import CatalogPort
from apps.common.errors import NotFound, ValidationError
from apps.common.money import price_breakdown

from .domain import Cart
from .inventory import require_active_product
from .repository import CartRepository

logger = logging.getLogger("shop.cart")


@dataclass(frozen=True)
class CartSummary:
    item_count: int
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal


class CartService:
    def __init__(self, catalog: CatalogPort, repository: CartRepository | None = None):
        self.catalog = catalog
        self.repository = repository or CartRepository()

    def get_cart(self, user_id: str) -> Cart:
        return self.repository.get(user_id) or Cart(user_id=user_id)

    def add_item(self, user_id: str, product_id: str, quantity: int) -> Cart:
        """Add ``quantity`` units, merging into an existing line.

        Raises:
            ValidationError: quantity < 1.
            NotFound: product missing or inactive.
            InsufficientStock: existing + new quantity exceeds stock.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        product = require_active_product(self.catalog, product_id)
        cart = self.repository.mutate(user_id, lambda c: c.add(product, quantity), create=True)
        logger.info("cart item added", extra={"user_id": user_id, "product_id": product_id, "quantity": quantity})
        return cart

    def update_quantity(self, user_id: str, product_id: str, quantity: int) -> Cart:
        """Set the line quantity; 0 removes the line.

        Raises:
            ValidationError: quantity < 0.
            NotFound: line absent from the cart, or product missing/inactive.
            InsufficientStock: quantity exceeds stock.
        """
        if quantity < 0:
            raise ValidationError("Quantity cannot be negative")
        if quantity == 0:
            return self.repository.mutate(user_id, lambda c: _remove_existing(c, product_id))
        product = require_active_product(self.catalog, product_id)
        cart = self.repository.mutate(user_id, lambda c: c.set_quantity(product, quantity))
        logger.info("cart item updated", extra={"user_id": user_id, "product_id": product_id, "quantity": quantity})
        return cart

    def remove_item(self, user_id: str, product_id: str) -> Cart:
        return self.repository.mutate(user_id, lambda c: c.remove(product_id))

    def clear(self, user_id: str) -> Cart:
        self.repository.clear(user_id)
        return self.get_cart(user_id)

    def summary(self, user_id: str) -> CartSummary:
        cart = self.get_cart(user_id)
        prices = price_breakdown(cart.total)
        return CartSummary(
            item_count=cart.item_count,
            subtotal=prices.subtotal,
            shipping_cost=prices.shipping_cost,
            tax=prices.tax,
            total=prices.total,
        )


def _remove_existing(cart: Cart, product_id: str) -> bool:
    if cart.line_for(product_id) is None:
        raise NotFound("Item not found in cart", product_id=product_id)
    return cart.remove(product_id)
