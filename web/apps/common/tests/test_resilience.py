import httpx
import pytest

from apps.common.resilience import CircuitBreaker, CircuitState, call_with_retries, make_breaker, parse_body


def response(status, method="GET", url="http://x/"):
    return httpx.Response(status, json={}, request=httpx.Request(method, url))


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("time.sleep", lambda *a, **k: None, raising=True)


def test_retries_5xx_then_succeeds(settings):
    settings.HTTP_RETRY_MAX = 2
    cb = CircuitBreaker("t", fail_threshold=5, reset_timeout=30)
    seen = []

    def send(headers):
        seen.append(dict(headers))
        return response(503 if len(seen) == 1 else 200)

    assert call_with_retries(cb, send).status_code == 200
    assert [h["X-Retry-Count"] for h in seen] == ["0", "1"]
    assert cb.state == "CLOSED"


def test_business_status_is_not_retried(settings):
    cb = CircuitBreaker("t", fail_threshold=5, reset_timeout=30)
    calls = []

    def send(headers):
        calls.append(1)
        return response(422)

    assert call_with_retries(cb, send).status_code == 422
    assert len(calls) == 1


def test_transport_errors_exhaust_retries_and_count_as_failure(settings):
    settings.HTTP_RETRY_MAX = 1
    cb = CircuitBreaker("t", fail_threshold=1, reset_timeout=30)
    calls = []

    def send(headers):
        calls.append(1)
        raise httpx.ConnectError("refused")

    with pytest.raises(httpx.ConnectError):
        call_with_retries(cb, send)
    assert len(calls) == 2
    assert cb.state == "OPEN"

    with pytest.raises(RuntimeError, match="CIRCUIT_OPEN"):
        call_with_retries(cb, send)
    assert len(calls) == 2


def test_persistent_5xx_raises(settings):
    settings.HTTP_RETRY_MAX = 0
    cb = CircuitBreaker("t", fail_threshold=5, reset_timeout=30)
    with pytest.raises(httpx.HTTPStatusError):
        call_with_retries(cb, lambda headers: response(500))


def test_half_open_trial_call_closes_on_success(monkeypatch):
    cb = CircuitBreaker("t", fail_threshold=1, reset_timeout=0)
    cb.record_failure()
    assert cb.state == "HALF_OPEN"
    assert call_with_retries(cb, lambda headers: response(200)).status_code == 200
    assert cb.state == "CLOSED"


def test_request_id_is_propagated():
    from gateway.middleware import REQUEST_ID_CTX

    cb = CircuitBreaker("t", fail_threshold=5, reset_timeout=30)
    token = REQUEST_ID_CTX.set("rid-123")
    try:
        seen = {}

        def send(headers):
            seen.update(headers)
            return response(200)

        call_with_retries(cb, send, headers={"Idempotency-Key": "k"})
    finally:
        REQUEST_ID_CTX.reset(token)
    assert seen["X-Request-ID"] == "rid-123"
    assert seen["Idempotency-Key"] == "k"


def test_failed_trial_call_reopens_and_second_trial_is_refused():
    cb = CircuitBreaker("t", fail_threshold=3, reset_timeout=0)
    for _ in range(3):
        cb.record_failure()
    assert cb.acquire() is CircuitState.HALF_OPEN
    with pytest.raises(RuntimeError, match="CIRCUIT_HALF_OPEN_BUSY"):
        cb.acquire()
    cb.record_failure()
    assert cb._state is CircuitState.OPEN


def test_breaker_thresholds_come_from_per_service_settings(settings):
    settings.HTTP_CIRCUITS = {"catalog": {"fail_threshold": 2, "reset_timeout": 7.5}}
    settings.HTTP_CIRCUIT_FAIL_THRESHOLD = 9
    catalog = make_breaker("catalog")
    other = make_breaker("gateway")
    assert (catalog.fail_threshold, catalog.reset_timeout) == (2, 7.5)
    assert other.fail_threshold == 9


def test_parse_body_turns_malformed_payload_into_decoding_error():
    resp = httpx.Response(200, text="<html>oops</html>", request=httpx.Request("GET", "http://x/"))
    with pytest.raises(httpx.DecodingError):
        parse_body(resp, lambda data: data["id"])

    resp = httpx.Response(200, json={"error": "bad"}, request=httpx.Request("GET", "http://x/"))
    with pytest.raises(httpx.DecodingError):
        parse_body(resp, lambda data: data["id"])
