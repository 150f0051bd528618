from datetime import datetime, timezone
from decimal import Decimal

import pytest

from apps.common.errors import InvalidTransition, Mismatch
from apps.orders import state_machine
from apps.orders.domain import Address, Order, OrderLine, OrderStatus, PaymentMethod, PaymentStatus
from apps.orders.state_machine import OrderEvent

NOW = datetime(2026, 1, 15, 10, 30, tzinfo=timezone.utc)
ADDRESS = Address("Asha", "Rao", "12 MG Road", "Bengaluru", "KA", "560001", "IN")


def make_order(method=PaymentMethod.GATEWAY, **kw):
    return Order(
        user_id="user-1",
        items=[OrderLine("mug", "Mug", Decimal("30.00"), 1, "")],
        shipping_address=ADDRESS,
        payment_method=method,
        subtotal=Decimal("30.00"),
        shipping_cost=Decimal("9.99"),
        tax=Decimal("2.40"),
        discount=Decimal("0.00"),
        total=Decimal("42.39"),
        **kw,
    )


def paid_order():
    order = make_order()
    state_machine.apply(order, OrderEvent.SESSION_OPENED, session_id="order_A")
    state_machine.apply(order, OrderEvent.PAYMENT_VERIFIED, payment_id="pay_1", signature="sig", session_id="order_A")
    return order


def test_cod_is_confirmed_without_payment():
    order = make_order(PaymentMethod.COD)
    assert state_machine.apply(order, OrderEvent.CONFIRM_COD) is True
    assert order.state == (PaymentStatus.PENDING, OrderStatus.CONFIRMED)


def test_cod_confirmation_only_for_cod():
    with pytest.raises(InvalidTransition):
        state_machine.apply(make_order(), OrderEvent.CONFIRM_COD)


def test_session_opened_stores_and_supersedes_id():
    order = make_order()
    assert state_machine.apply(order, OrderEvent.SESSION_OPENED, session_id="order_A") is True
    assert state_machine.apply(order, OrderEvent.SESSION_OPENED, session_id="order_A") is False
    assert state_machine.apply(order, OrderEvent.SESSION_OPENED, session_id="order_B") is True
    assert order.gateway_order_id == "order_B"
    assert order.state == (PaymentStatus.PENDING, OrderStatus.PENDING)


def test_session_for_cod_order_is_rejected():
    order = make_order(PaymentMethod.COD)
    state_machine.apply(order, OrderEvent.CONFIRM_COD)
    with pytest.raises(InvalidTransition):
        state_machine.apply(order, OrderEvent.SESSION_OPENED, session_id="order_A")


def test_verified_payment_is_applied_once():
    order = paid_order()
    assert order.state == (PaymentStatus.PAID, OrderStatus.CONFIRMED)
    assert order.gateway_payment_id == "pay_1"

    again = state_machine.apply(
        order, OrderEvent.PAYMENT_VERIFIED, payment_id="pay_1", signature="sig", session_id="order_A"
    )
    assert again is False


def test_second_payment_on_paid_order_is_rejected():
    order = paid_order()
    with pytest.raises(InvalidTransition):
        state_machine.apply(order, OrderEvent.PAYMENT_VERIFIED, payment_id="pay_2", signature="sig2")


def test_verification_for_superseded_session_is_a_mismatch():
    order = make_order()
    state_machine.apply(order, OrderEvent.SESSION_OPENED, session_id="order_A")
    state_machine.apply(order, OrderEvent.SESSION_OPENED, session_id="order_B")
    with pytest.raises(Mismatch):
        state_machine.apply(order, OrderEvent.PAYMENT_VERIFIED, payment_id="p", signature="s", session_id="order_A")
    assert order.payment_status == PaymentStatus.PENDING


def test_failure_cancels_with_default_reason():
    order = make_order()
    assert state_machine.apply(order, OrderEvent.PAYMENT_FAILED, now=NOW) is True
    assert order.state == (PaymentStatus.FAILED, OrderStatus.CANCELLED)
    assert order.cancelled_at == NOW
    assert order.cancellation_reason == "Payment failed"

    # duplicate failure report
    assert state_machine.apply(order, OrderEvent.PAYMENT_FAILED, reason="other") is False
    assert order.cancellation_reason == "Payment failed"


def test_verify_after_failure_is_rejected():
    order = make_order()
    state_machine.apply(order, OrderEvent.SESSION_OPENED, session_id="order_A")
    state_machine.apply(order, OrderEvent.PAYMENT_FAILED, reason="Card declined")
    with pytest.raises(InvalidTransition):
        state_machine.apply(order, OrderEvent.PAYMENT_VERIFIED, payment_id="p", signature="s", session_id="order_A")


def test_fulfillment_path_records_timestamps():
    order = paid_order()
    state_machine.apply(order, OrderEvent.PROCESS, now=NOW)
    state_machine.apply(order, OrderEvent.SHIP, now=NOW, tracking_number="TRK1")
    state_machine.apply(order, OrderEvent.DELIVER, now=NOW)

    assert order.order_status == OrderStatus.DELIVERED
    assert order.processing_at == order.shipped_at == order.delivered_at == NOW
    assert order.tracking_number == "TRK1"
    assert order.is_terminal


def test_unpaid_gateway_order_cannot_be_processed():
    with pytest.raises(InvalidTransition) as exc:
        state_machine.apply(make_order(), OrderEvent.PROCESS)
    assert exc.value.context == {"payment_status": "pending", "order_status": "pending"}


def test_cod_order_can_be_fulfilled():
    order = make_order(PaymentMethod.COD)
    state_machine.apply(order, OrderEvent.CONFIRM_COD)
    state_machine.apply(order, OrderEvent.PROCESS)
    assert order.order_status == OrderStatus.PROCESSING


def test_ship_requires_processing():
    with pytest.raises(InvalidTransition):
        state_machine.apply(paid_order(), OrderEvent.SHIP)


def test_cancel_paid_order_keeps_payment_and_flags_refund_due():
    order = paid_order()
    assert not order.refund_due
    state_machine.apply(order, OrderEvent.CANCEL, now=NOW, reason="Changed my mind")
    assert order.state == (PaymentStatus.PAID, OrderStatus.CANCELLED)
    assert order.refund_due
    assert order.gateway_payment_id is not None
    assert order.cancellation_reason == "Changed my mind"


def test_terminal_orders_cannot_be_cancelled():
    order = paid_order()
    for event in (OrderEvent.PROCESS, OrderEvent.SHIP, OrderEvent.DELIVER):
        state_machine.apply(order, event)
    with pytest.raises(InvalidTransition):
        state_machine.apply(order, OrderEvent.CANCEL)
