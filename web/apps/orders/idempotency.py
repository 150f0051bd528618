"""Idempotency records for checkout requests.

A client retrying ``POST /api/orders/`` with the same ``Idempotency-Key``
gets the stored response instead of a second checkout attempt. Keys are
scoped per user. Reusing a key with a different payload is a conflict.
"""

import hashlib
import json

from django.db import IntegrityError, transaction
from rest_framework.utils.encoders import JSONEncoder

from .models import IdempotencyKey


def _hash(payload) -> str:
    """Stable SHA-256 of a JSON payload (sorted keys, compact separators)."""
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), cls=JSONEncoder)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def _jsonable(body: dict) -> dict:
    # Store exactly what the renderer would send (Decimal -> number, UUID -> str)
    return json.loads(json.dumps(body, cls=JSONEncoder))


@transaction.atomic
def get_or_create_idempotent(user_id: str, key: str, payload):
    """Get-or-create the idempotency record for ``(user_id, key)``.

    Returns:
        tuple[bool, IdempotencyKey]: ``(existing, rec)``; ``existing`` is
        False when this call created the record and the caller must
        ``finalize`` it.

    Raises:
        ValueError: ``IDEMPOTENCY_CONFLICT`` when the key was used with a
            different payload.
    """
    h = _hash(payload)
    try:
        with transaction.atomic():
            rec = IdempotencyKey.objects.create(
                user_id=user_id, key=key, request_hash=h, response_status=0, response_body={},
            )
            return False, rec
    except IntegrityError:
        rec = IdempotencyKey.objects.select_for_update().get(user_id=user_id, key=key)
        if rec.request_hash != h:
            raise ValueError("IDEMPOTENCY_CONFLICT")
        return True, rec


def finalize(rec: IdempotencyKey, status_code: int, body: dict, order_id=None) -> dict:
    """Store the final response so retries can replay it; return the stored body."""
    rec.response_status = status_code
    rec.response_body = _jsonable(body)
    if order_id is not None:
        rec.order_id = order_id
    rec.save(update_fields=["response_status", "response_body", "order"])
    return rec.response_body
