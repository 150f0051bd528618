"""Payment flow for gateway-paid orders.

``open_session`` asks the processor for a session covering the order total
and stores the session id on the order. ``verify_callback`` checks the
processor's signature and the session id before marking the order paid.
``record_failure`` cancels an order whose payment attempt failed. Every
state change goes through ``OrderRepository.transition``.
"""

import logging
from typing import Optional, Tuple

import httpx
from django.conf import settings

from apps.common.errors import GatewayError, InvalidSignature, Mismatch, NotFound
from apps.common.money import to_minor_units
from apps.orders import state_machine
from apps.orders.domain import Order
from apps.orders.repository import OrderRepository
from apps.orders.state_machine import OrderEvent

from .domain import GatewayPort, PaymentSession, signature_matches

logger = logging.getLogger("shop.payments")


class PaymentService:
    def __init__(self, gateway: GatewayPort, orders: OrderRepository | None = None):
        self.gateway = gateway
        self.orders = orders or OrderRepository()

    def _order(self, user_id: str, order_id) -> Order:
        order = self.orders.get_for_user(order_id, user_id)
        if order is None:
            raise NotFound("Order not found", order_id=str(order_id))
        return order

    def open_session(self, user_id: str, order_id) -> Tuple[Order, PaymentSession]:
        """Open (or reopen) a processor session for a pending gateway order.

        Raises:
            GatewayError: The order is not the caller's, or the processor
                call failed; the order is unchanged.
            InvalidTransition: The order is not awaiting a gateway payment.
        """
        order = self.orders.get_for_user(order_id, user_id)
        if order is None:
            raise GatewayError("Order not found", order_id=str(order_id))
        state_machine.ensure_awaiting_gateway_payment(order)

        try:
            session = self.gateway.create_session(
                amount=to_minor_units(order.total),
                currency=order.currency,
                receipt=order.order_number,
                notes={"order_id": str(order.id), "user_id": user_id},
            )
        except (httpx.HTTPError, RuntimeError) as e:
            logger.error(
                "payment session failed",
                extra={"order_id": str(order.id), "error": str(e)},
            )
            raise GatewayError(order_id=str(order.id)) from e

        order, changed = self.orders.transition(
            order.id, user_id, OrderEvent.SESSION_OPENED, session_id=session.id
        )
        logger.info(
            "payment session opened",
            extra={"order_id": str(order.id), "session_id": session.id, "amount": session.amount, "new": changed},
        )
        return order, session

    def verify_callback(self, user_id: str, order_id, gateway_order_id: str,
                        gateway_payment_id: str, signature: str) -> Tuple[Order, bool]:
        """Verify a processor callback and mark the order paid.

        Returns:
            tuple[Order, bool]: The order and whether this call changed it; a
            duplicate delivery of an applied callback returns ``False``.

        Raises:
            NotFound: No such order for the caller.
            InvalidSignature: The signature does not match; order unchanged.
            Mismatch: ``gateway_order_id`` is not the order's session.
            InvalidTransition: The order can no longer be paid.
        """
        order = self._order(user_id, order_id)
        audit = {
            "order_id": str(order.id),
            "user_id": user_id,
            "gateway_order_id": gateway_order_id,
            "gateway_payment_id": gateway_payment_id,
        }
        if not signature_matches(settings.PAYMENT_GATEWAY_KEY_SECRET, gateway_order_id,
                                 gateway_payment_id, signature):
            logger.warning("payment signature rejected", extra=audit)
            raise InvalidSignature(
                payment_status=order.payment_status.value,
                order_status=order.order_status.value,
            )
        try:
            order, changed = self.orders.transition(
                order.id,
                user_id,
                OrderEvent.PAYMENT_VERIFIED,
                payment_id=gateway_payment_id,
                signature=signature,
                session_id=gateway_order_id,
            )
        except Mismatch:
            logger.warning("payment session mismatch", extra={**audit, "stored_session": order.gateway_order_id})
            raise
        if not changed:
            logger.info("duplicate payment callback ignored", extra=audit)
        return order, changed

    def record_failure(self, user_id: str, order_id, reason: Optional[str] = None) -> Tuple[Order, bool]:
        order, changed = self.orders.transition(order_id, user_id, OrderEvent.PAYMENT_FAILED, reason=reason)
        logger.info(
            "payment failure recorded",
            extra={"order_id": str(order.id), "reason": order.cancellation_reason, "new": changed},
        )
        return order, changed

    def status(self, user_id: str, order_id) -> Order:
        return self._order(user_id, order_id)
