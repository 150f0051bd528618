"""Order materializer: turns the caller's cart into an immutable order.

Steps, in order:

1. Load the cart; an absent or empty cart fails with ``EmptyCart``.
2. Re-read every line from the catalog and re-run the inventory guard;
   the first short line aborts with ``InsufficientStock`` naming it.
3. Price the order from current catalog prices.
4. Reserve stock in the catalog (atomic conditional decrement).
5. In one database transaction: claim the cart (empty it only if its
   version is unchanged) and insert the order under a fresh order number.
   If anything in this step fails the reservation is released.

No partial order is ever written and a cart can only be checked out once.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

import httpx
from django.conf import settings
from django.db import IntegrityError, transaction

from apps.cart.inventory import ensure_available, require_active_product
from apps.cart.repository import CartRepository
from apps.catalog.domain import CatalogPort
from apps.common.errors import (
    Conflict,
    EmptyCart,
    InsufficientStock,
    UpstreamUnavailable,
    ValidationError,
)
from apps.common.money import ZERO, price_breakdown, subtotal_of

from . import state_machine
from .domain import Address, Order, OrderLine, PaymentMethod
from .repository import OrderRepository

logger = logging.getLogger("shop.orders")


class OrderMaterializer:
    def __init__(self, catalog: CatalogPort, carts: CartRepository | None = None,
                 orders: OrderRepository | None = None):
        self.catalog = catalog
        self.carts = carts or CartRepository()
        self.orders = orders or OrderRepository()

    def create_order(
        self,
        user_id: str,
        shipping_address: Address,
        payment_method: PaymentMethod,
        billing_address: Optional[Address] = None,
        discount: Decimal = ZERO,
        notes: Optional[str] = None,
    ) -> Order:
        """Materialize the caller's cart into an order.

        Raises:
            EmptyCart: No cart or no lines.
            NotFound: A line's product disappeared or was deactivated.
            InsufficientStock: Stock no longer covers a line.
            ValidationError: Discount larger than the order amount.
            Conflict: The cart changed during checkout, or no unique order
                number could be allocated.
            UpstreamUnavailable: The catalog could not be reached.
        """
        cart = self.carts.get(user_id)
        if cart is None or cart.is_empty:
            raise EmptyCart()

        lines: List[OrderLine] = []
        for line in cart.lines:
            product = require_active_product(self.catalog, line.product_id)
            ensure_available(product, line.quantity)
            lines.append(
                OrderLine(
                    product_id=product.id,
                    name=product.name,
                    unit_price=product.price,
                    quantity=line.quantity,
                    image=product.image,
                )
            )

        prices = price_breakdown(subtotal_of((l.quantity, l.unit_price) for l in lines), discount)
        if prices.total < 0:
            raise ValidationError("Discount exceeds the order amount")

        order = Order(
            user_id=user_id,
            items=lines,
            shipping_address=shipping_address,
            billing_address=billing_address or shipping_address,
            payment_method=payment_method,
            subtotal=prices.subtotal,
            shipping_cost=prices.shipping_cost,
            tax=prices.tax,
            discount=prices.discount,
            total=prices.total,
            currency=settings.PAYMENT_CURRENCY,
            notes=notes,
        )
        if payment_method == PaymentMethod.COD:
            state_machine.apply(order, state_machine.OrderEvent.CONFIRM_COD)

        reservation = [(l.product_id, l.quantity) for l in lines]
        self._reserve(reservation, lines)
        try:
            with transaction.atomic():
                if not self.carts.claim(cart):
                    raise Conflict("Cart changed during checkout, please review it and retry")
                self._insert_with_number(order)
        except Exception:
            self._release(reservation, order)
            raise

        logger.info(
            "order created",
            extra={
                "order_id": str(order.id),
                "order_number": order.order_number,
                "user_id": user_id,
                "total": str(order.total),
                "payment_method": payment_method.value,
            },
        )
        return order

    def _insert_with_number(self, order: Order) -> Order:
        attempts = max(1, getattr(settings, "ORDER_NUMBER_RETRIES", 3))
        for attempt in range(attempts):
            number = self.orders.next_order_number()
            try:
                with transaction.atomic():
                    return self.orders.insert(order, number)
            except IntegrityError:
                logger.warning("order number collision", extra={"order_number": number, "attempt": attempt})
        raise Conflict("Could not allocate a unique order number, please retry")

    def _reserve(self, reservation: List[Tuple[str, int]], lines: List[OrderLine]) -> None:
        try:
            ok = self.catalog.reserve(reservation)
        except (httpx.HTTPError, RuntimeError) as e:
            logger.error("stock reservation failed", extra={"error": str(e)})
            raise UpstreamUnavailable() from e
        if ok:
            return
        # Stock moved between the guard and the reservation: name the line
        for line in lines:
            product = require_active_product(self.catalog, line.product_id)
            ensure_available(product, line.quantity)
        raise InsufficientStock("Stock changed during checkout")

    def _release(self, reservation: List[Tuple[str, int]], order: Order) -> None:
        try:
            self.catalog.release(reservation)
            logger.info("stock reservation released", extra={"order_id": str(order.id)})
        except (httpx.HTTPError, RuntimeError) as e:
            logger.error(
                "stock reservation release failed",
                extra={"order_id": str(order.id), "items": reservation, "error": str(e)},
            )
