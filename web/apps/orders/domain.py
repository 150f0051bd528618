"""Domain models for orders.

An ``Order`` is the immutable record of a checkout. After creation only the
status fields, the gateway correlation fields and the fulfillment/
cancellation timestamps change, and only through
``apps.orders.state_machine.apply``.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


# ---- Enums ----
class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentMethod(str, Enum):
    GATEWAY = "gateway"
    COD = "cod"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.RETURNED})


# ---- Value objects ----
@dataclass(frozen=True)
class Address:
    """Postal address captured at checkout; never follows address-book edits."""

    first_name: str
    last_name: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str
    phone: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
            "phone": self.phone,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Address":
        return cls(**{k: data.get(k) for k in cls.__dataclass_fields__})


@dataclass(frozen=True)
class OrderLine:
    """Line snapshot taken at checkout: name, price and image as sold."""

    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    image: str

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


# ---- Aggregate ----
@dataclass
class Order:
    user_id: str
    items: List[OrderLine]
    shipping_address: Address
    payment_method: PaymentMethod
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    order_number: Optional[str] = None
    billing_address: Optional[Address] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    order_status: OrderStatus = OrderStatus.PENDING
    currency: str = "INR"
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    gateway_signature: Optional[str] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    processing_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def state(self) -> tuple:
        return (self.payment_status, self.order_status)

    @property
    def is_terminal(self) -> bool:
        return self.order_status in TERMINAL_STATUSES

    @property
    def refund_due(self) -> bool:
        """A captured payment on a cancelled order that nobody has refunded yet."""
        return self.payment_status == PaymentStatus.PAID and self.order_status == OrderStatus.CANCELLED

    def totals_balance(self) -> bool:
        return self.total == self.subtotal + self.shipping_cost + self.tax - self.discount
