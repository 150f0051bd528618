"""Payment processor port and callback signatures.

The processor signs every successful payment with HMAC-SHA256 over
``"<session_id>|<payment_id>"`` keyed by the merchant secret, hex encoded.
"""

import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Dict, Protocol


@dataclass(frozen=True)
class PaymentSession:
    """A processor-side handle for an amount to be collected.

    ``amount`` is in minor currency units.
    """

    id: str
    amount: int
    currency: str
    receipt: str
    status: str = "created"
    notes: Dict[str, str] = field(default_factory=dict)


class GatewayPort(Protocol):
    def create_session(self, amount: int, currency: str, receipt: str,
                       notes: Dict[str, str]) -> PaymentSession: ...


def sign(secret: str, session_id: str, payment_id: str) -> str:
    message = f"{session_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signature_matches(secret: str, session_id: str, payment_id: str, signature: str) -> bool:
    """Constant-time comparison of ``signature`` against the expected one."""
    expected = sign(secret, session_id, payment_id)
    return hmac.compare_digest(expected.encode("utf-8"), (signature or "").encode("utf-8"))
