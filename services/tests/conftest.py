import os

# In-memory databases must be configured before the service modules import
os.environ.setdefault("CATALOG_DATABASE_URL", "sqlite://")
os.environ.setdefault("GATEWAY_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from services.catalog import repo as catalog_repo
from services.catalog.main import app as catalog_app
from services.gateway import repo as gateway_repo
from services.gateway.main import KEY_ID, KEY_SECRET
from services.gateway.main import app as gateway_app


@pytest.fixture
def catalog_client():
    catalog_repo.Base.metadata.drop_all(catalog_repo.engine)
    with TestClient(catalog_app) as c:
        yield c


@pytest.fixture
def gateway_client():
    gateway_repo.Base.metadata.drop_all(gateway_repo.engine)
    with TestClient(gateway_app) as c:
        yield c


@pytest.fixture
def merchant_auth():
    return (KEY_ID, KEY_SECRET)
