"""Wiring helpers for the orders views.

The catalog port is picked by ``apps.catalog.providers.get_catalog`` (HTTP
client or the in-process stub, depending on ``settings.USE_HTTP_ADAPTERS``).
"""

from apps.catalog.providers import get_catalog

from .materializer import OrderMaterializer
from .repository import OrderRepository


def get_order_materializer() -> OrderMaterializer:
    return OrderMaterializer(catalog=get_catalog())


def get_order_repository() -> OrderRepository:
    return OrderRepository()
