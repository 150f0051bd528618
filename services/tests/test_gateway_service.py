import hashlib
import hmac

from services.gateway.main import KEY_SECRET
from services.gateway.repo import ALREADY_PAID, GatewayRepo, Payment, get_session

BODY = {"amount": 4239, "currency": "INR", "receipt": "ORD-000001", "notes": {"order_id": "o-1"}}


def test_requires_basic_auth(gateway_client):
    assert gateway_client.post("/v1/orders", json=BODY).status_code == 401
    assert gateway_client.post("/v1/orders", json=BODY, auth=("rzp_test_x", "wrong")).status_code == 401


def test_create_and_fetch_session(gateway_client, merchant_auth):
    r = gateway_client.post("/v1/orders", json=BODY, auth=merchant_auth)
    assert r.status_code == 200
    data = r.json()
    assert data["id"].startswith("order_")
    assert data["amount"] == 4239
    assert data["status"] == "created"

    got = gateway_client.get(f"/v1/orders/{data['id']}", auth=merchant_auth)
    assert got.status_code == 200
    assert got.json()["receipt"] == "ORD-000001"
    assert gateway_client.get("/v1/orders/order_missing", auth=merchant_auth).status_code == 404


def test_idempotency_key_returns_same_session(gateway_client, merchant_auth):
    h = {"Idempotency-Key": "ORD-000001"}
    a = gateway_client.post("/v1/orders", json=BODY, auth=merchant_auth, headers=h).json()
    b = gateway_client.post("/v1/orders", json=BODY, auth=merchant_auth, headers=h).json()
    assert a["id"] == b["id"]

    other = dict(BODY, amount=1)
    c = gateway_client.post("/v1/orders", json=other, auth=merchant_auth, headers=h)
    assert c.status_code == 409
    assert c.json()["detail"] == "IDEMPOTENCY_CONFLICT"


def test_pay_returns_signed_callback(gateway_client, merchant_auth):
    sid = gateway_client.post("/v1/orders", json=BODY, auth=merchant_auth).json()["id"]

    r = gateway_client.post(f"/v1/orders/{sid}/pay")
    assert r.status_code == 200
    cb = r.json()
    expected = hmac.new(
        KEY_SECRET.encode(), f"{sid}|{cb['gateway_payment_id']}".encode(), hashlib.sha256
    ).hexdigest()
    assert cb["gateway_order_id"] == sid
    assert cb["signature"] == expected

    assert gateway_client.get(f"/v1/orders/{sid}", auth=merchant_auth).json()["status"] == "paid"
    assert gateway_client.post(f"/v1/orders/{sid}/pay").status_code == 409


def test_failed_attempt_keeps_session_payable(gateway_client, merchant_auth):
    sid = gateway_client.post("/v1/orders", json=BODY, auth=merchant_auth).json()["id"]

    r = gateway_client.post(f"/v1/orders/{sid}/pay", json={"outcome": "failure", "reason": "Card declined"})
    assert r.status_code == 200
    assert r.json()["status"] == "failed"
    assert r.json()["reason"] == "Card declined"
    assert "signature" not in r.json()

    s = gateway_client.get(f"/v1/orders/{sid}", auth=merchant_auth).json()
    assert s["status"] == "attempted"
    assert s["attempts"] == 1


def test_pay_unknown_session(gateway_client):
    assert gateway_client.post("/v1/orders/order_nope/pay").status_code == 404


def test_second_capture_is_refused_under_the_row_lock(gateway_client):
    repo = GatewayRepo()
    sid = repo.create_session(4239, "INR", "ORD-000002", {})["id"]

    # what two racing /pay requests reach once both passed the lookup
    first = repo.record_payment(sid, True)
    second = repo.record_payment(sid, True)

    assert first["status"] == "captured"
    assert second == {"payment_id": None, "status": ALREADY_PAID}
    with get_session() as s:
        assert s.query(Payment).filter_by(session_id=sid, status="captured").count() == 1
    assert repo.find_session(sid)["attempts"] == 1
