"""Pydantic schemas for the cart API."""

import re
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

PRODUCT_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def check_product_id(v: str) -> str:
    if not PRODUCT_ID_RE.match(v):
        raise ValueError("Invalid product id")
    return v


class AddItemIn(BaseModel):
    product_id: str = Field(min_length=1, max_length=64)
    quantity: int = Field(default=1, ge=1)

    @field_validator("product_id")
    @classmethod
    def validate_product_id(cls, v: str) -> str:
        return check_product_id(v)


class UpdateQuantityIn(BaseModel):
    quantity: int = Field(ge=0)


class CartLineOut(BaseModel):
    product_id: str
    quantity: int
    price: Decimal
    line_total: Decimal


class CartOut(BaseModel):
    user_id: str
    items: list[CartLineOut]
    total: Decimal
    version: int

    @classmethod
    def from_cart(cls, cart) -> "CartOut":
        return cls(
            user_id=cart.user_id,
            items=[
                CartLineOut(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price=line.price,
                    line_total=line.line_total,
                )
                for line in cart.lines
            ],
            total=cart.total,
            version=cart.version,
        )


class CartSummaryOut(BaseModel):
    item_count: int
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    total: Decimal
