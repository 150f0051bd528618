"""Inventory guard: stock sufficiency checks against the catalog.

The guard is a pure decision (``is_available``) plus two helpers that turn
catalog answers into domain errors. It runs on every cart mutation and again
at checkout, because stock may move between the two.
"""

import logging

import httpx

from apps.catalog.domain import CatalogPort, Product
from apps.common.errors import InsufficientStock, NotFound, UpstreamUnavailable

logger = logging.getLogger("shop.catalog")


def is_available(requested: int, available: int) -> bool:
    """Accept unless ``requested`` strictly exceeds ``available``."""
    return requested <= available


def ensure_available(product: Product, requested: int) -> None:
    """Raise ``InsufficientStock`` naming the product when stock is short."""
    if not is_available(requested, product.stock):
        raise InsufficientStock(
            f"Only {product.stock} unit(s) of {product.id} available, {requested} requested",
            product_id=product.id,
            available=product.stock,
            requested=requested,
        )


def require_active_product(catalog: CatalogPort, product_id: str) -> Product:
    """Look a product up, failing with ``NotFound`` if missing or inactive.

    Transport failures and an open circuit surface as ``UpstreamUnavailable``.
    """
    try:
        product = catalog.get_product(product_id)
    except (httpx.HTTPError, RuntimeError) as e:
        logger.error("catalog lookup failed", extra={"product_id": product_id, "error": str(e)})
        raise UpstreamUnavailable() from e
    if product is None or not product.is_active:
        raise NotFound("Product not found", product_id=product_id)
    return product
