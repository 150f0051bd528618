"""Repository for carts.

Carts are written with an optimistic read-modify-write: the row is read,
the domain mutation runs in memory, and the write only lands if the row's
``version`` is still the one that was read. A lost race re-reads and
re-applies the mutation, up to ``settings.CART_WRITE_RETRIES`` attempts,
then fails with ``Conflict``. A delayed earlier write can therefore never
overwrite a later one.
"""

import logging
from decimal import Decimal
from typing import Callable, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.common.errors import Conflict

from .domain import Cart, CartLine
from .models import CartModel

logger = logging.getLogger("shop.cart")


def _to_domain(row: CartModel) -> Cart:
    lines = [
        CartLine(product_id=i["product_id"], quantity=int(i["quantity"]), price=Decimal(i["price"]))
        for i in row.items
    ]
    return Cart(user_id=row.user_id, lines=lines, version=row.version)


def _items_json(cart: Cart) -> list:
    return [
        {"product_id": line.product_id, "quantity": line.quantity, "price": str(line.price)}
        for line in cart.lines
    ]


class CartRepository:
    def get(self, user_id: str) -> Optional[Cart]:
        row = CartModel.objects.filter(user_id=user_id).first()
        return _to_domain(row) if row else None

    def mutate(self, user_id: str, fn: Callable[[Cart], Optional[bool]], create: bool = False) -> Cart:
        """Apply ``fn`` to the user's cart and persist it atomically.

        ``fn`` may raise a domain error (nothing is written) or return
        ``False`` to signal "no change" (nothing is written either).

        Args:
            user_id: Owner of the cart.
            fn: In-memory mutation applied to the loaded cart.
            create: Create the cart lazily when it does not exist yet.
                Without it, ``fn`` runs against an empty transient cart.

        Raises:
            Conflict: When the write keeps losing races.
        """
        attempts = max(1, getattr(settings, "CART_WRITE_RETRIES", 3))
        for attempt in range(attempts):
            row = CartModel.objects.filter(user_id=user_id).first()
            if row is None:
                cart = Cart(user_id=user_id)
                if fn(cart) is False or not create:
                    return cart
                try:
                    with transaction.atomic():
                        CartModel.objects.create(
                            user_id=user_id, items=_items_json(cart), total=cart.total, version=1,
                        )
                except IntegrityError:
                    # created concurrently: retry against the stored row
                    logger.info("cart create race", extra={"user_id": user_id, "attempt": attempt})
                    continue
                cart.version = 1
                return cart

            cart = _to_domain(row)
            if fn(cart) is False:
                return cart
            updated = CartModel.objects.filter(pk=row.pk, version=row.version).update(
                items=_items_json(cart),
                total=cart.total,
                version=row.version + 1,
                updated_at=timezone.now(),
            )
            if updated:
                cart.version = row.version + 1
                return cart
            logger.info("cart version conflict", extra={"user_id": user_id, "attempt": attempt})

        raise Conflict("Cart was modified concurrently, please retry", user_id=user_id)

    def claim(self, cart: Cart) -> bool:
        """Empty ``cart`` only if nobody wrote it since it was read.

        Used by checkout inside the order transaction: exactly one of two
        concurrent checkouts of the same cart can win the claim.
        """
        updated = CartModel.objects.filter(user_id=cart.user_id, version=cart.version).update(
            items=[], total=0, version=cart.version + 1, updated_at=timezone.now(),
        )
        return bool(updated)

    def clear(self, user_id: str) -> None:
        """Empty the cart unconditionally; idempotent, no-op without a cart."""
        row = CartModel.objects.filter(user_id=user_id).first()
        if row is None or (not row.items and row.total == 0):
            return
        self.mutate(user_id, lambda cart: cart.clear())
