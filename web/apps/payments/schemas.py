from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class OpenSessionIn(BaseModel):
    order_id: UUID


class VerifyCallbackIn(BaseModel):
    order_id: UUID
    gateway_order_id: str = Field(min_length=1, max_length=64)
    gateway_payment_id: str = Field(min_length=1, max_length=64)
    signature: str = Field(min_length=1, max_length=128)


class RecordFailureIn(BaseModel):
    order_id: UUID
    reason: Optional[str] = Field(default=None, max_length=255)


class PaymentStatusOut(BaseModel):
    order_id: UUID
    order_number: str
    payment_method: str
    payment_status: str
    order_status: str
    total: str
    currency: str
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    refund_due: bool = False

    @classmethod
    def from_order(cls, order) -> "PaymentStatusOut":
        return cls(
            order_id=order.id,
            order_number=order.order_number,
            payment_method=order.payment_method.value,
            payment_status=order.payment_status.value,
            order_status=order.order_status.value,
            total=str(order.total),
            currency=order.currency,
            gateway_order_id=order.gateway_order_id,
            gateway_payment_id=order.gateway_payment_id,
            refund_due=order.refund_due,
        )
