"""Pydantic schemas for the orders API.

Request schemas validate checkout and status-update bodies before anything
is written; ``OrderReadDTO`` shapes every order returned by the API.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .domain import Address, Order


class AddressIn(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    address: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    zip_code: str = Field(min_length=2, max_length=20)
    country: str = Field(min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)

    @field_validator("first_name", "last_name", "address", "city", "state", "zip_code", "country")
    @classmethod
    def strip_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("Field cannot be blank")
        return v2

    def to_domain(self) -> Address:
        return Address(**self.model_dump())


class CheckoutIn(BaseModel):
    """Body of ``POST /api/orders/``.

    Attributes:
        shipping_address: Required delivery address.
        billing_address: Optional; defaults to the shipping address.
        payment_method: ``gateway`` (online payment) or ``cod``.
        discount: Flat discount already resolved by promotions, >= 0.
        notes: Free-form delivery notes.
    """

    shipping_address: AddressIn
    billing_address: Optional[AddressIn] = None
    payment_method: Literal["gateway", "cod"]
    discount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=500)


class StatusUpdateIn(BaseModel):
    status: Literal["processing", "shipped", "delivered", "cancelled"]
    reason: Optional[str] = Field(default=None, max_length=255)
    tracking_number: Optional[str] = Field(default=None, max_length=64)


class OrderLineOut(BaseModel):
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    image: str


class OrderReadDTO(BaseModel):
    id: UUID
    order_number: str
    items: list[OrderLineOut]
    shipping_address: dict
    billing_address: Optional[dict] = None
    payment_method: str
    payment_status: str
    order_status: str
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    currency: str
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    processing_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    refund_due: bool = False
    created_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderReadDTO":
        return cls(
            id=order.id,
            order_number=order.order_number,
            items=[
                OrderLineOut(
                    product_id=l.product_id,
                    name=l.name,
                    unit_price=l.unit_price,
                    quantity=l.quantity,
                    image=l.image,
                )
                for l in order.items
            ],
            shipping_address=order.shipping_address.as_dict(),
            billing_address=order.billing_address.as_dict() if order.billing_address else None,
            payment_method=order.payment_method.value,
            payment_status=order.payment_status.value,
            order_status=order.order_status.value,
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            tax=order.tax,
            discount=order.discount,
            total=order.total,
            currency=order.currency,
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=order.gateway_payment_id,
            notes=order.notes,
            tracking_number=order.tracking_number,
            processing_at=order.processing_at,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            cancellation_reason=order.cancellation_reason,
            refund_due=order.refund_due,
            created_at=order.created_at,
        )
