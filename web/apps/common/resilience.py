"""Retries, circuit breaking and context headers for outgoing HTTP calls.

Both downstream collaborators (the catalog service and the payment
processor) are called through ``call_with_retries`` which adds:

- Request correlation: ``X-Request-ID`` is copied from the ContextVar set by
  the gateway middleware.
- A circuit breaker per downstream service, with HALF_OPEN probing after a
  timeout.
- Retries with exponential backoff for transport errors and 5xx responses.
  Any other status is returned to the caller, which maps business outcomes
  (404, 409, 422...) itself.
"""

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional, TypeVar

import httpx
from django.conf import settings

from gateway.middleware import REQUEST_ID_CTX

logger = logging.getLogger("shop.http")

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class CircuitBreaker:
    """Per-service circuit breaker.

    ``fail_threshold`` consecutive failed calls open the circuit. Once
    ``reset_timeout`` seconds have passed, a single trial call is let through
    (HALF_OPEN): success closes the circuit, failure opens it again. Every
    state change is logged on ``shop.http``.
    """

    def __init__(self, name: str, fail_threshold: int, reset_timeout: float):
        self.name = name
        self.fail_threshold = fail_threshold
        self.reset_timeout = reset_timeout
        self._lock = threading.RLock()
        self._failures = 0
        self._state = CircuitState.CLOSED
        self._opened_at = 0.0
        self._probing = False

    def _move(self, new: CircuitState) -> None:
        if new is self._state:
            return
        logger.warning(
            "circuit state changed",
            extra={"service": self.name, "from": self._state.value, "to": new.value, "failures": self._failures},
        )
        self._state = new
        self._probing = False
        if new is CircuitState.OPEN:
            self._opened_at = time.monotonic()

    @property
    def state(self) -> CircuitState:
        with self._lock:
            cooled = time.monotonic() - self._opened_at >= self.reset_timeout
            if self._state is CircuitState.OPEN and cooled:
                self._move(CircuitState.HALF_OPEN)
            return self._state

    def snapshot(self) -> dict:
        with self._lock:
            return {"state": self.state.value, "failures": self._failures}

    def acquire(self) -> CircuitState:
        """Admit a call and return the state it was admitted in.

        Raises:
            RuntimeError: ``CIRCUIT_OPEN``, or ``CIRCUIT_HALF_OPEN_BUSY`` when
                the single trial slot is taken.
        """
        with self._lock:
            st = self.state
            if st is CircuitState.OPEN:
                raise RuntimeError("CIRCUIT_OPEN")
            if st is CircuitState.HALF_OPEN:
                if self._probing:
                    raise RuntimeError("CIRCUIT_HALF_OPEN_BUSY")
                self._probing = True
            return st

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._move(CircuitState.CLOSED)

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state is CircuitState.HALF_OPEN or self._failures >= self.fail_threshold:
                self._move(CircuitState.OPEN)

    def release(self) -> None:
        with self._lock:
            if self._state is CircuitState.HALF_OPEN:
                self._probing = False

    def reset(self) -> None:
        with self._lock:
            self._failures = 0
            self._state = CircuitState.CLOSED
            self._probing = False


def make_breaker(name: str) -> CircuitBreaker:
    """Build the breaker for ``name`` from ``settings.HTTP_CIRCUITS``.

    Services without an entry use ``HTTP_CIRCUIT_FAIL_THRESHOLD`` and
    ``HTTP_CIRCUIT_RESET_TIMEOUT``.
    """
    conf = getattr(settings, "HTTP_CIRCUITS", {}).get(name, {})
    return CircuitBreaker(
        name,
        conf.get("fail_threshold", getattr(settings, "HTTP_CIRCUIT_FAIL_THRESHOLD", 5)),
        conf.get("reset_timeout", getattr(settings, "HTTP_CIRCUIT_RESET_TIMEOUT", 30.0)),
    )


def parse_body(resp: httpx.Response, build: Callable[[dict], T]) -> T:
    """Build a value from a JSON response body.

    Raises:
        httpx.DecodingError: The body is not JSON or lacks what ``build``
            needs, so callers treat it like any other failed exchange.
    """
    try:
        return build(resp.json())
    except (ValueError, KeyError, TypeError, AttributeError, ArithmeticError) as e:
        raise httpx.DecodingError(f"malformed response body: {e!r}", request=resp.request) from e


def request_headers(extra: Optional[dict] = None) -> dict:
    """Base headers including ``X-Request-ID`` plus any extras."""
    headers: dict[str, str] = {}
    rid = REQUEST_ID_CTX.get()
    if rid and rid != "-":
        headers["X-Request-ID"] = rid
    if extra:
        headers.update(extra)
    return headers


def retry_policy():
    """Return ``(max_retries, backoff_base_seconds, max_sleep_seconds)``."""
    return (
        getattr(settings, "HTTP_RETRY_MAX", 2),
        getattr(settings, "HTTP_RETRY_BACKOFF_BASE", 0.15),
        getattr(settings, "HTTP_RETRY_MAX_SLEEP", 0.5),
    )


def should_retry(resp: Optional[httpx.Response], exc: Optional[Exception]) -> bool:
    if exc is not None:
        return True
    if resp is not None and 500 <= resp.status_code < 600:
        return True
    return False


def call_with_retries(
    breaker: CircuitBreaker,
    send: Callable[[dict], httpx.Response],
    headers: Optional[dict] = None,
) -> httpx.Response:
    """Run ``send(headers)`` under the breaker with retry on transport/5xx.

    ``HTTP_RETRY_MAX`` is the number of retries after the first attempt.
    Non-5xx responses close the breaker and are returned untouched.

    Raises:
        RuntimeError: When the circuit is open.
        httpx.RequestError: Transport error after the last retry.
        httpx.HTTPStatusError: 5xx after the last retry.
    """
    max_retries, backoff, cap = retry_policy()
    state = breaker.acquire()
    headers = request_headers({**(headers or {}), "X-Circuit-State": state.value, "X-Retry-Count": "0"})
    tries = 0
    try:
        while True:
            resp = None
            exc = None
            try:
                resp = send(headers)
                if not should_retry(resp, None):
                    breaker.record_success()
                    return resp
            except httpx.RequestError as e:
                exc = e

            tries += 1
            if tries > max_retries:
                breaker.record_failure()
                if exc:
                    raise exc
                resp.raise_for_status()
                return resp

            headers["X-Retry-Count"] = str(tries)
            sleep_s = backoff * (2 ** (tries - 1))
            if sleep_s > 0:
                time.sleep(min(sleep_s, cap))
    finally:
        breaker.release()
