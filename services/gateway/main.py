"""Sandbox payment processor built with FastAPI.

Merchants authenticate with HTTP basic auth (key id / key secret) and
create sessions with ``POST /v1/orders``. An ``Idempotency-Key`` header makes
creation idempotent: the same key and payload return the same session; the
same key with a different payload is a 409.

``POST /v1/orders/{id}/pay`` stands in for the customer completing the
hosted checkout. A successful payment returns the callback payload the
storefront must verify: the session id, the payment id and an HMAC-SHA256
signature over ``"<session_id>|<payment_id>"`` keyed by the key secret.
"""

import hashlib
import hmac
import os
import secrets
import time
from typing import Annotated, Dict, Literal, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field, constr
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from services.logs import install_request_id, json_logger

from .repo import (
    ALREADY_PAID,
    GatewayRepo,
    IdempotencyKey,
    PaymentSession,
    canonical_hash,
    engine,
    get_session,
    init_db,
    new_session,
)

KEY_ID = os.getenv("GATEWAY_KEY_ID", "rzp_test_1234567890ABCDE")
KEY_SECRET = os.getenv("GATEWAY_KEY_SECRET", "test_secret_key")

app = FastAPI(title="Sandbox Payment Gateway")
security = HTTPBasic()

Currency = constr(pattern=r"^[A-Z]{3}$")

logger = json_logger("gateway")
install_request_id(app, logger)


@app.on_event("startup")
def _startup_db():
    # wait briefly until the database accepts connections
    deadline = time.time() + 30
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            break
        except Exception:
            if time.time() > deadline:
                raise
            time.sleep(1)
    init_db()


def merchant(credentials: Annotated[HTTPBasicCredentials, Depends(security)]) -> str:
    ok_user = secrets.compare_digest(credentials.username.encode("utf-8"), KEY_ID.encode("utf-8"))
    ok_pass = secrets.compare_digest(credentials.password.encode("utf-8"), KEY_SECRET.encode("utf-8"))
    if not (ok_user and ok_pass):
        raise HTTPException(status_code=401, detail="UNAUTHORIZED", headers={"WWW-Authenticate": "Basic"})
    return credentials.username


def sign(session_id: str, payment_id: str) -> str:
    message = f"{session_id}|{payment_id}".encode("utf-8")
    return hmac.new(KEY_SECRET.encode("utf-8"), message, hashlib.sha256).hexdigest()


class CreateSessionRequest(BaseModel):
    """Request body for session creation.

    Attributes:
        amount: Amount in minor units (paise, cents), positive.
        currency: Three-letter ISO currency code.
        receipt: Merchant reference, the storefront order number.
        notes: Opaque merchant key/value notes.
    """
    amount: int = Field(gt=0)
    currency: Currency
    receipt: str = Field(min_length=1, max_length=64)
    notes: Dict[str, str] = Field(default_factory=dict)


class PayRequest(BaseModel):
    outcome: Literal["success", "failure"] = "success"
    reason: Optional[str] = Field(default=None, max_length=255)


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/v1/orders")
def create_session(
    req: CreateSessionRequest,
    _merchant: Annotated[str, Depends(merchant)],
    idempotency_key: Annotated[Optional[str], Header(alias="Idempotency-Key")] = None,
):
    """Create a payment session.

    Raises:
        HTTPException: 409 IDEMPOTENCY_CONFLICT when the key was used with a
            different payload.
    """
    repo = GatewayRepo()
    if not idempotency_key:
        return repo.create_session(req.amount, req.currency, req.receipt, req.notes)

    payload_hash = canonical_hash(req.model_dump())
    with get_session() as s:
        try:
            s.add(IdempotencyKey(key=idempotency_key, request_hash=payload_hash))
            s.commit()
        except IntegrityError:
            s.rollback()
            rec = s.execute(
                select(IdempotencyKey).where(IdempotencyKey.key == idempotency_key).with_for_update()
            ).scalars().first()
            if not rec:
                raise HTTPException(status_code=500, detail="IDEMPOTENCY_LOOKUP_ERROR")
            if rec.request_hash != payload_hash:
                raise HTTPException(status_code=409, detail="IDEMPOTENCY_CONFLICT")
            if rec.session_id:
                existing = s.get(PaymentSession, rec.session_id)
                if existing:
                    return existing.as_dict()

        # Create the session and bind it to the key in one transaction
        created = new_session(req.amount, req.currency, req.receipt, req.notes)
        rec = s.get(IdempotencyKey, idempotency_key)
        rec.session_id = created.id
        s.add_all([created, rec])
        s.commit()
        return created.as_dict()


@app.get("/v1/orders/{session_id}")
def get_session_view(session_id: str, _merchant: Annotated[str, Depends(merchant)]):
    found = GatewayRepo().find_session(session_id)
    if found is None:
        raise HTTPException(status_code=404, detail="NOT_FOUND")
    return found


@app.post("/v1/orders/{session_id}/pay")
def pay(session_id: str, req: Optional[PayRequest] = None):
    """Simulate the customer paying (or failing to pay) a session.

    Returns:
        dict: On success the signed callback payload; on failure the
        failure reason the storefront should record.

    Raises:
        HTTPException: 404 for an unknown session; 409 when already paid.
    """
    req = req or PayRequest()
    success = req.outcome == "success"
    result = GatewayRepo().record_payment(session_id, success, req.reason)
    if result is None:
        raise HTTPException(status_code=404, detail="NOT_FOUND")
    if result["status"] == ALREADY_PAID:
        raise HTTPException(status_code=409, detail="ALREADY_PAID")
    if not success:
        logger.info("payment failed", extra={"session_id": session_id, "payment_id": result["payment_id"]})
        return {
            "gateway_order_id": session_id,
            "gateway_payment_id": result["payment_id"],
            "status": "failed",
            "reason": req.reason or "Payment failed",
        }
    logger.info("payment captured", extra={"session_id": session_id, "payment_id": result["payment_id"]})
    return {
        "gateway_order_id": session_id,
        "gateway_payment_id": result["payment_id"],
        "signature": sign(session_id, result["payment_id"]),
        "status": "captured",
    }
