import threading
from concurrent.futures import ThreadPoolExecutor

import pytest
from django.core.cache import cache
from django.db import connections

from apps.catalog.http_adapters import catalog_cb
from apps.catalog.providers import STUB_CATALOG
from apps.payments.http_adapters import gateway_cb
from apps.payments.providers import STUB_GATEWAY

ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "address": "12 MG Road",
    "city": "Bengaluru",
    "state": "KA",
    "zip_code": "560001",
    "country": "IN",
    "phone": "+91-9000000000",
}


@pytest.fixture(autouse=True)
def use_stubs_for_tests(settings):
    settings.USE_HTTP_ADAPTERS = False
    settings.HTTP_RETRY_BACKOFF_BASE = 0.0
    cache.clear()
    STUB_CATALOG.reset()
    STUB_GATEWAY.reset()
    catalog_cb.reset()
    gateway_cb.reset()
    yield
    cache.clear()


@pytest.fixture
def catalog():
    return STUB_CATALOG


@pytest.fixture
def gateway():
    return STUB_GATEWAY


@pytest.fixture
def auth():
    """Request kwargs carrying the identity header for ``user-1``."""
    return {"HTTP_X_USER_ID": "user-1"}


@pytest.fixture
def other_auth():
    return {"HTTP_X_USER_ID": "user-2"}


@pytest.fixture
def address():
    return dict(ADDRESS)


@pytest.fixture
def race():
    """Run callables in threads released together by a barrier.

    Returns each call's result, or the exception it raised, in call order.
    Needs ``django_db(transaction=True)`` so the threads see committed rows.
    """

    def _race(*calls):
        barrier = threading.Barrier(len(calls))

        def run(fn):
            barrier.wait()
            try:
                return fn()
            except Exception as e:
                return e
            finally:
                connections.close_all()

        with ThreadPoolExecutor(max_workers=len(calls)) as pool:
            return list(pool.map(run, calls))

    return _race
