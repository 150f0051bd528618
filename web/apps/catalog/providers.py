"""Select the catalog implementation for the current settings.

``settings.USE_HTTP_ADAPTERS`` picks the HTTP client; otherwise the
process-wide ``STUB_CATALOG`` is returned so state survives across
requests in tests and local development.
"""

from django.conf import settings

from .adapters import CatalogStub
from .domain import CatalogPort
from .http_adapters import HttpCatalogClient

STUB_CATALOG = CatalogStub()


def get_catalog() -> CatalogPort:
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return HttpCatalogClient()
    return STUB_CATALOG
