"""In-process stub implementation of ``CatalogPort``.

The stub keeps products in a dict guarded by a lock. It backs the test
suite and local development without the catalog service running.
"""

import threading
from dataclasses import replace
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .domain import CatalogPort, Product


class CatalogStub(CatalogPort):
    def __init__(self):
        self._lock = threading.Lock()
        self._products: Dict[str, Product] = {}

    def reset(self):
        with self._lock:
            self._products.clear()

    def put(self, product_id: str, price, stock: int, name: str | None = None,
            is_active: bool = True, image: str = "") -> Product:
        """Create or replace a product (test/dev seeding)."""
        product = Product(
            id=product_id,
            name=name or product_id,
            price=Decimal(str(price)),
            stock=stock,
            is_active=is_active,
            image=image or f"https://cdn.example.com/products/{product_id}.jpg",
        )
        with self._lock:
            self._products[product_id] = product
        return product

    def stock_of(self, product_id: str) -> int:
        with self._lock:
            p = self._products.get(product_id)
            return p.stock if p else 0

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._lock:
            return self._products.get(product_id)

    def reserve(self, items: List[Tuple[str, int]]) -> bool:
        wanted: Dict[str, int] = {}
        for pid, qty in items:
            wanted[pid] = wanted.get(pid, 0) + qty
        with self._lock:
            for pid, qty in wanted.items():
                p = self._products.get(pid)
                if p is None or p.stock < qty:
                    return False
            for pid, qty in wanted.items():
                p = self._products[pid]
                self._products[pid] = replace(p, stock=p.stock - qty)
            return True

    def release(self, items: List[Tuple[str, int]]) -> None:
        with self._lock:
            for pid, qty in items:
                p = self._products.get(pid)
                if p is None:
                    continue
                self._products[pid] = replace(p, stock=p.stock + qty)
