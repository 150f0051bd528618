"""Cart domain objects.

A cart holds at most one line per product. Every mutation goes through a
method here so the stock check and the price refresh are applied the same
way no matter which endpoint triggered it. ``total`` is never stored on the
object; it is derived from the lines each time it is read.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from apps.catalog.domain import Product
from apps.common.errors import NotFound, ValidationError
from apps.common.money import ZERO, subtotal_of

from .inventory import ensure_available


@dataclass
class CartLine:
    """One product in the cart.

    Attributes:
        product_id: Catalog product id, unique within the cart.
        quantity: Units requested, always >= 1.
        price: Unit price snapshot, refreshed from the catalog on every
            add or quantity update.
    """

    product_id: str
    quantity: int
    price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


@dataclass
class Cart:
    user_id: str
    lines: List[CartLine] = field(default_factory=list)
    version: int = 0

    @property
    def total(self) -> Decimal:
        if not self.lines:
            return ZERO
        return subtotal_of((line.quantity, line.price) for line in self.lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def line_for(self, product_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def add(self, product: Product, quantity: int) -> None:
        """Merge ``quantity`` units of ``product`` into the cart.

        The cumulative quantity (existing + new) is checked against stock.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")
        line = self.line_for(product.id)
        requested = quantity + (line.quantity if line else 0)
        ensure_available(product, requested)
        if line:
            line.quantity = requested
            line.price = product.price
        else:
            self.lines.append(CartLine(product_id=product.id, quantity=quantity, price=product.price))

    def set_quantity(self, product: Product, quantity: int) -> None:
        line = self.line_for(product.id)
        if line is None:
            raise NotFound("Item not found in cart", product_id=product.id)
        ensure_available(product, quantity)
        line.quantity = quantity
        line.price = product.price

    def remove(self, product_id: str) -> bool:
        """Drop the line for ``product_id``; return False if it was absent."""
        before = len(self.lines)
        self.lines = [line for line in self.lines if line.product_id != product_id]
        return len(self.lines) != before

    def clear(self) -> None:
        self.lines = []
