import pytest

from apps.catalog.http_adapters import catalog_cb


@pytest.mark.django_db
def test_health_reports_db_and_circuits(client):
    r = client.get("/health/")
    assert r.status_code == 200
    body = r.json()
    assert body["ok"] is True
    assert body["components"]["circuits"] == {
        "catalog": {"state": "CLOSED", "failures": 0},
        "gateway": {"state": "CLOSED", "failures": 0},
    }


@pytest.mark.django_db
def test_open_circuit_is_reported_without_failing(client):
    for _ in range(catalog_cb.fail_threshold):
        catalog_cb.record_failure()
    body = client.get("/health/").json()
    assert body["components"]["circuits"]["catalog"]["state"] == "OPEN"
    assert body["ok"] is True
