"""Order state machine.

State is the pair ``(payment_status, order_status)``. ``apply`` is the only
function that changes it. It returns True when the order changed, False
when the event is a duplicate delivery that was already applied (same
gateway reference), and raises ``InvalidTransition`` for anything else.

    (pending, pending)   --confirm_cod-->       (pending, confirmed)
    (pending, pending)   --session_opened-->    (pending, pending)  + session id
    (pending, pending)   --payment_verified-->  (paid, confirmed)   + payment ref, signature
    (pending, pending)   --payment_failed-->    (failed, cancelled) + cancelled_at, reason
    confirmed (paid or cod) --process--> processing --ship--> shipped --deliver--> delivered
    any non-terminal     --cancel-->            cancelled (payment status kept)

Cancelling a paid order does not move money: the payment stays ``paid`` and
the order reports ``refund_due`` until a refund is issued outside this flow.
No event sets ``refunded``.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from django.utils import timezone

from apps.common.errors import InvalidTransition, Mismatch

from .domain import Order, OrderStatus, PaymentMethod, PaymentStatus

DEFAULT_FAILURE_REASON = "Payment failed"
DEFAULT_CANCEL_REASON = "Cancelled by customer"


class OrderEvent(str, Enum):
    CONFIRM_COD = "confirm_cod"
    SESSION_OPENED = "session_opened"
    PAYMENT_VERIFIED = "payment_verified"
    PAYMENT_FAILED = "payment_failed"
    PROCESS = "process"
    SHIP = "ship"
    DELIVER = "deliver"
    CANCEL = "cancel"


AWAITING_PAYMENT = (PaymentStatus.PENDING, OrderStatus.PENDING)


def _reject(order: Order, event: OrderEvent, message: Optional[str] = None):
    raise InvalidTransition(
        message or f"Cannot apply '{event.value}' to order in state "
        f"({order.payment_status.value}, {order.order_status.value})",
        payment_status=order.payment_status.value,
        order_status=order.order_status.value,
    )


def apply(order: Order, event: OrderEvent, now: Optional[datetime] = None, **data) -> bool:
    """Apply ``event`` to ``order`` in place.

    Args:
        order: Domain order to transition.
        event: The triggering event.
        now: Timestamp for recorded side effects (defaults to now).
        **data: Event payload: ``session_id`` for SESSION_OPENED;
            ``payment_id``, ``signature`` and optionally the expected
            ``session_id`` for PAYMENT_VERIFIED; ``reason``
            for PAYMENT_FAILED and CANCEL; ``tracking_number`` for SHIP.

    Returns:
        bool: True if the order changed, False for an idempotent replay.

    Raises:
        InvalidTransition: The event is not allowed from the current state.
        Mismatch: PAYMENT_VERIFIED for a session that is not the stored one.
    """
    now = now or timezone.now()
    handler = _HANDLERS[OrderEvent(event)]
    return handler(order, now, **data)


def _confirm_cod(order: Order, now, **_) -> bool:
    if order.payment_method != PaymentMethod.COD or order.state != AWAITING_PAYMENT:
        _reject(order, OrderEvent.CONFIRM_COD)
    order.order_status = OrderStatus.CONFIRMED
    return True


def ensure_awaiting_gateway_payment(order: Order) -> None:
    """Raise ``InvalidTransition`` unless a gateway session may be opened."""
    if order.payment_method != PaymentMethod.GATEWAY:
        _reject(order, OrderEvent.SESSION_OPENED, "Order is not paid through the gateway")
    if order.state != AWAITING_PAYMENT:
        _reject(order, OrderEvent.SESSION_OPENED)


def _session_opened(order: Order, now, session_id: str, **_) -> bool:
    ensure_awaiting_gateway_payment(order)
    if order.gateway_order_id == session_id:
        return False
    # a new session id supersedes the previous one: callbacks for the old
    # session no longer match the stored id
    order.gateway_order_id = session_id
    return True


def _payment_verified(order: Order, now, payment_id: str, signature: str,
                      session_id: Optional[str] = None, **_) -> bool:
    if session_id is not None and order.gateway_order_id != session_id:
        raise Mismatch(
            payment_status=order.payment_status.value,
            order_status=order.order_status.value,
        )
    if order.payment_status == PaymentStatus.PAID and order.gateway_payment_id == payment_id:
        return False
    if order.state != AWAITING_PAYMENT:
        _reject(order, OrderEvent.PAYMENT_VERIFIED)
    order.payment_status = PaymentStatus.PAID
    order.order_status = OrderStatus.CONFIRMED
    order.gateway_payment_id = payment_id
    order.gateway_signature = signature
    return True


def _payment_failed(order: Order, now, reason: Optional[str] = None, **_) -> bool:
    if order.state == (PaymentStatus.FAILED, OrderStatus.CANCELLED):
        return False
    if order.state != AWAITING_PAYMENT:
        _reject(order, OrderEvent.PAYMENT_FAILED)
    order.payment_status = PaymentStatus.FAILED
    order.order_status = OrderStatus.CANCELLED
    order.cancelled_at = now
    order.cancellation_reason = reason or DEFAULT_FAILURE_REASON
    return True


def _process(order: Order, now, **_) -> bool:
    settled = order.payment_status == PaymentStatus.PAID or (
        order.payment_method == PaymentMethod.COD and order.payment_status == PaymentStatus.PENDING
    )
    if order.order_status != OrderStatus.CONFIRMED or not settled:
        _reject(order, OrderEvent.PROCESS)
    order.order_status = OrderStatus.PROCESSING
    order.processing_at = now
    return True


def _ship(order: Order, now, tracking_number: Optional[str] = None, **_) -> bool:
    if order.order_status != OrderStatus.PROCESSING:
        _reject(order, OrderEvent.SHIP)
    order.order_status = OrderStatus.SHIPPED
    order.shipped_at = now
    if tracking_number:
        order.tracking_number = tracking_number
    return True


def _deliver(order: Order, now, **_) -> bool:
    if order.order_status != OrderStatus.SHIPPED:
        _reject(order, OrderEvent.DELIVER)
    order.order_status = OrderStatus.DELIVERED
    order.delivered_at = now
    return True


def _cancel(order: Order, now, reason: Optional[str] = None, **_) -> bool:
    if order.is_terminal:
        _reject(order, OrderEvent.CANCEL)
    order.order_status = OrderStatus.CANCELLED
    order.cancelled_at = now
    order.cancellation_reason = reason or DEFAULT_CANCEL_REASON
    return True


_HANDLERS = {
    OrderEvent.CONFIRM_COD: _confirm_cod,
    OrderEvent.SESSION_OPENED: _session_opened,
    OrderEvent.PAYMENT_VERIFIED: _payment_verified,
    OrderEvent.PAYMENT_FAILED: _payment_failed,
    OrderEvent.PROCESS: _process,
    OrderEvent.SHIP: _ship,
    OrderEvent.DELIVER: _deliver,
    OrderEvent.CANCEL: _cancel,
}
