"""Catalog port consumed by the cart and checkout flows.

The catalog is an external collaborator: the core reads price, stock and
availability from it, and writes to it only to reserve (decrement) stock at
order materialization, or to release that reservation when the order could
not be persisted.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Protocol, Tuple


@dataclass(frozen=True)
class Product:
    """Read-only view of a catalog product.

    Attributes:
        id: Product identifier used as the cart line key.
        name: Display name, copied onto order lines at checkout.
        price: Current unit price.
        stock: Units currently available (never negative).
        is_active: Inactive products cannot be added or checked out.
        image: Primary image URL, copied onto order lines at checkout.
    """

    id: str
    name: str
    price: Decimal
    stock: int
    is_active: bool = True
    image: str = ""


class CatalogPort(Protocol):
    def get_product(self, product_id: str) -> Optional[Product]:
        """Return the product, or None when it does not exist."""
        raise NotImplementedError()

    def reserve(self, items: List[Tuple[str, int]]) -> bool:
        """Atomically decrement stock for every ``(product_id, quantity)``.

        Either all lines are reserved or none is. Returns False when any
        line has insufficient stock.
        """
        raise NotImplementedError()

    def release(self, items: List[Tuple[str, int]]) -> None:
        """Give back stock taken by a previous successful ``reserve``."""
        raise NotImplementedError()
