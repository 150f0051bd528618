"""Repository layer for persisting orders.

Maps domain ``Order`` objects to ``OrderModel``/``OrderItemModel`` rows so
the materializer and the payment flow are not coupled to ORM details.
Status changes go through ``transition``, which runs the state machine on a
locked row and writes the result with a compare-and-set on the state it
read, so concurrent callbacks cannot both apply.
"""

import logging
from typing import Optional, Tuple

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from apps.common.errors import Conflict, NotFound

from . import state_machine
from .domain import Address, Order, OrderLine, OrderStatus, PaymentMethod, PaymentStatus
from .models import OrderItemModel, OrderModel

logger = logging.getLogger("shop.orders")

ORDER_NUMBER_FORMAT = "ORD-{:06d}"

# Fields the state machine may change after creation
MUTABLE_FIELDS = (
    "payment_status",
    "order_status",
    "gateway_order_id",
    "gateway_payment_id",
    "gateway_signature",
    "tracking_number",
    "processing_at",
    "shipped_at",
    "delivered_at",
    "cancelled_at",
    "cancellation_reason",
)


def to_domain(row: OrderModel) -> Order:
    return Order(
        id=row.id,
        user_id=row.user_id,
        order_number=row.order_number,
        items=[
            OrderLine(
                product_id=i.product_id,
                name=i.name,
                unit_price=i.unit_price,
                quantity=i.quantity,
                image=i.image,
            )
            for i in row.items.all()
        ],
        shipping_address=Address.from_dict(row.shipping_address),
        billing_address=Address.from_dict(row.billing_address) if row.billing_address else None,
        payment_method=PaymentMethod(row.payment_method),
        payment_status=PaymentStatus(row.payment_status),
        order_status=OrderStatus(row.order_status),
        subtotal=row.subtotal,
        shipping_cost=row.shipping_cost,
        tax=row.tax,
        discount=row.discount,
        total=row.total,
        currency=row.currency,
        gateway_order_id=row.gateway_order_id,
        gateway_payment_id=row.gateway_payment_id,
        gateway_signature=row.gateway_signature,
        notes=row.notes,
        tracking_number=row.tracking_number,
        processing_at=row.processing_at,
        shipped_at=row.shipped_at,
        delivered_at=row.delivered_at,
        cancelled_at=row.cancelled_at,
        cancellation_reason=row.cancellation_reason,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _mutable_values(order: Order) -> dict:
    values = {name: getattr(order, name) for name in MUTABLE_FIELDS}
    values["payment_status"] = order.payment_status.value
    values["order_status"] = order.order_status.value
    return values


class OrderRepository:
    def next_order_number(self) -> str:
        """Count-based candidate number; uniqueness is enforced by the DB."""
        return ORDER_NUMBER_FORMAT.format(OrderModel.objects.count() + 1)

    def insert(self, order: Order, order_number: str) -> Order:
        """Persist a new order with its lines.

        Raises:
            IntegrityError: ``order_number`` is already taken.
        """
        row = OrderModel.objects.create(
            id=order.id,
            user_id=order.user_id,
            order_number=order_number,
            payment_method=order.payment_method.value,
            payment_status=order.payment_status.value,
            order_status=order.order_status.value,
            shipping_address=order.shipping_address.as_dict(),
            billing_address=order.billing_address.as_dict() if order.billing_address else None,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            tax=order.tax,
            discount=order.discount,
            total=order.total,
            currency=order.currency,
            notes=order.notes,
        )
        OrderItemModel.objects.bulk_create(
            [
                OrderItemModel(
                    order=row,
                    position=pos,
                    product_id=line.product_id,
                    name=line.name,
                    unit_price=line.unit_price,
                    quantity=line.quantity,
                    image=line.image,
                )
                for pos, line in enumerate(order.items)
            ]
        )
        order.order_number = order_number
        order.created_at = row.created_at
        order.updated_at = row.updated_at
        return order

    def get_for_user(self, order_id, user_id: str) -> Optional[Order]:
        row = OrderModel.objects.prefetch_related("items").filter(id=order_id, user_id=user_id).first()
        return to_domain(row) if row else None

    def list_for_user(self, user_id: str, order_status: str | None = None,
                      payment_status: str | None = None) -> QuerySet:
        qs = OrderModel.objects.filter(user_id=user_id).prefetch_related("items").order_by("-created_at", "-order_number")
        if order_status:
            qs = qs.filter(order_status=order_status)
        if payment_status:
            qs = qs.filter(payment_status=payment_status)
        return qs

    def transition(self, order_id, user_id: str, event, attempts: int = 3, **data) -> Tuple[Order, bool]:
        """Run ``event`` through the state machine and persist the outcome.

        Returns:
            tuple[Order, bool]: The current order and whether it changed.

        Raises:
            NotFound: No such order for ``user_id``.
            InvalidTransition: Propagated from the state machine; nothing written.
            Conflict: The row kept changing underneath us.
        """
        for attempt in range(attempts):
            with transaction.atomic():
                row = (
                    OrderModel.objects.select_for_update()
                    .filter(id=order_id, user_id=user_id)
                    .first()
                )
                if row is None:
                    raise NotFound("Order not found", order_id=str(order_id))
                order = to_domain(row)
                changed = state_machine.apply(order, event, **data)
                if not changed:
                    return order, False
                updated = OrderModel.objects.filter(
                    id=row.id,
                    payment_status=row.payment_status,
                    order_status=row.order_status,
                    gateway_order_id=row.gateway_order_id,
                ).update(**_mutable_values(order), updated_at=timezone.now())
                if updated:
                    logger.info(
                        "order transitioned",
                        extra={
                            "order_id": str(row.id),
                            "event": getattr(event, "value", event),
                            "payment_status": order.payment_status.value,
                            "order_status": order.order_status.value,
                        },
                    )
                    return order, True
            logger.info("order transition conflict", extra={"order_id": str(order_id), "attempt": attempt})
        raise Conflict("Order was modified concurrently, please retry", order_id=str(order_id))
