"""HTTP client for the payment processor.

Sessions are created with ``POST /v1/orders`` using HTTP basic auth
(key id / key secret). The receipt doubles as the ``Idempotency-Key`` so a
retried request after a timeout returns the same session instead of a
divergent one.
"""

import logging
from typing import Dict

import httpx
from django.conf import settings

from apps.common.resilience import call_with_retries, make_breaker, parse_body

from .domain import GatewayPort, PaymentSession

logger = logging.getLogger("shop.payments")

gateway_cb = make_breaker("gateway")


class HttpGatewayClient(GatewayPort):
    def __init__(self, base_url: str | None = None, timeout: float | None = None,
                 key_id: str | None = None, key_secret: str | None = None):
        self.base_url = base_url or settings.PAYMENT_GATEWAY_BASE_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECS
        self.auth = (
            key_id or settings.PAYMENT_GATEWAY_KEY_ID,
            key_secret or settings.PAYMENT_GATEWAY_KEY_SECRET,
        )

    def create_session(self, amount: int, currency: str, receipt: str,
                       notes: Dict[str, str]) -> PaymentSession:
        """Request a session from the processor.

        Raises:
            httpx.HTTPError: Transport failure, a non-2xx answer or a body
                that does not describe a session.
            RuntimeError: The circuit is open.
        """
        payload = {"amount": amount, "currency": currency, "receipt": receipt, "notes": notes}
        with httpx.Client(timeout=self.timeout, auth=self.auth) as client:
            resp = call_with_retries(
                gateway_cb,
                lambda headers: client.post(f"{self.base_url}/v1/orders", json=payload, headers=headers),
                headers={"Idempotency-Key": receipt},
            )
        resp.raise_for_status()
        return parse_body(
            resp,
            lambda data: PaymentSession(
                id=str(data["id"]),
                amount=int(data["amount"]),
                currency=data["currency"],
                receipt=data.get("receipt") or receipt,
                status=data.get("status", "created"),
                notes=data.get("notes") or {},
            ),
        )
