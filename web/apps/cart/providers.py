from apps.catalog.providers import get_catalog

from .service import CartService


def get_cart_service() -> CartService:
    """Return a ``CartService`` wired with the configured catalog port."""
    return CartService(catalog=get_catalog())
