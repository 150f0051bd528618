"""In-process stub of the payment processor.

Sessions are idempotent by receipt, like the HTTP processor: asking twice
for the same receipt returns the same session. ``down`` simulates an
unreachable processor and ``pay`` produces the signed callback payload a
real checkout widget would hand back to the storefront.
"""

import threading
import uuid
from typing import Dict

from django.conf import settings

from .domain import GatewayPort, PaymentSession, sign


class GatewayStub(GatewayPort):
    def __init__(self):
        self._lock = threading.Lock()
        self._by_receipt: Dict[str, PaymentSession] = {}
        self.down = False
        self.calls = 0

    def reset(self):
        with self._lock:
            self._by_receipt.clear()
            self.down = False
            self.calls = 0

    def create_session(self, amount: int, currency: str, receipt: str,
                       notes: Dict[str, str]) -> PaymentSession:
        with self._lock:
            self.calls += 1
            if self.down:
                raise RuntimeError("GATEWAY_UNAVAILABLE")
            session = self._by_receipt.get(receipt)
            if session is None:
                session = PaymentSession(
                    id=f"order_{uuid.uuid4().hex[:14]}",
                    amount=amount,
                    currency=currency,
                    receipt=receipt,
                    notes=dict(notes),
                )
                self._by_receipt[receipt] = session
            return session

    def expire(self, receipt: str) -> None:
        """Forget a session so the next request for ``receipt`` gets a new id."""
        with self._lock:
            self._by_receipt.pop(receipt, None)

    def pay(self, session_id: str) -> dict:
        payment_id = f"pay_{uuid.uuid4().hex[:14]}"
        return {
            "gateway_order_id": session_id,
            "gateway_payment_id": payment_id,
            "signature": sign(settings.PAYMENT_GATEWAY_KEY_SECRET, session_id, payment_id),
        }
