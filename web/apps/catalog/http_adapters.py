"""HTTP client for the catalog service.

Lookups and reservations go through ``call_with_retries`` so they share the
retry policy and the catalog circuit breaker. Business responses are mapped
here: 404 on lookup means "no such product", 409/422 on reserve means
"insufficient stock" and neither counts as a circuit failure.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

import httpx
from django.conf import settings

from apps.common.resilience import call_with_retries, make_breaker, parse_body

from .domain import CatalogPort, Product

logger = logging.getLogger("shop.catalog")

catalog_cb = make_breaker("catalog")


def _to_product(data: dict) -> Product:
    return Product(
        id=str(data["id"]),
        name=data.get("name") or str(data["id"]),
        price=Decimal(str(data["price"])),
        stock=int(data.get("stock", 0)),
        is_active=bool(data.get("is_active", True)),
        image=data.get("image") or "",
    )


def _lines_payload(items: List[Tuple[str, int]]) -> dict:
    return {"items": [{"product_id": pid, "quantity": qty} for pid, qty in items]}


class HttpCatalogClient(CatalogPort):
    """Catalog port backed by the catalog FastAPI service."""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.CATALOG_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS

    def get_product(self, product_id: str) -> Optional[Product]:
        with httpx.Client(timeout=self.timeout) as client:
            resp = call_with_retries(
                catalog_cb,
                lambda headers: client.get(f"{self.base_url}/products/{product_id}", headers=headers),
            )
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return parse_body(resp, _to_product)

    def reserve(self, items: List[Tuple[str, int]]) -> bool:
        payload = _lines_payload(items)
        with httpx.Client(timeout=self.timeout) as client:
            resp = call_with_retries(
                catalog_cb,
                lambda headers: client.post(f"{self.base_url}/reserve", json=payload, headers=headers),
            )
        if resp.status_code == 200:
            return parse_body(resp, lambda data: bool(data["reserved"]))
        if resp.status_code in (409, 422):
            return False
        resp.raise_for_status()
        return False

    def release(self, items: List[Tuple[str, int]]) -> None:
        payload = _lines_payload(items)
        with httpx.Client(timeout=self.timeout) as client:
            resp = call_with_retries(
                catalog_cb,
                lambda headers: client.post(f"{self.base_url}/release", json=payload, headers=headers),
            )
        resp.raise_for_status()
