"""Money arithmetic and the checkout pricing policy.

Amounts are ``Decimal`` end to end. Rounding to cents happens once per
derived figure (shipping, tax, total) with ROUND_HALF_UP, which is how the
storefront has always displayed totals.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple

from django.conf import settings

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Quantize ``value`` to two decimal places."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Decimal) -> int:
    """Express ``amount`` in the processor's minor unit (x100, rounded)."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def line_total(quantity: int, unit_price: Decimal) -> Decimal:
    return Decimal(unit_price) * quantity


def subtotal_of(lines: Iterable[Tuple[int, Decimal]]) -> Decimal:
    """Sum ``quantity x unit_price`` over ``(quantity, unit_price)`` pairs."""
    return to_money(sum((line_total(q, p) for q, p in lines), ZERO))


@dataclass(frozen=True)
class PriceBreakdown:
    """Subtotal, shipping, tax, discount and grand total for a basket."""

    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal


def shipping_for(subtotal: Decimal) -> Decimal:
    """Flat fee, waived when the subtotal reaches the free-shipping threshold."""
    if subtotal <= ZERO:
        return ZERO
    if subtotal >= settings.FREE_SHIPPING_THRESHOLD:
        return ZERO
    return to_money(settings.SHIPPING_FLAT_FEE)


def tax_for(subtotal: Decimal) -> Decimal:
    return to_money(subtotal * settings.TAX_RATE)


def price_breakdown(subtotal: Decimal, discount: Decimal = ZERO) -> PriceBreakdown:
    """Apply the pricing policy to ``subtotal``.

    ``total == subtotal + shipping_cost + tax - discount`` holds exactly on
    the returned values because every addend is already rounded to cents.
    """
    subtotal = to_money(subtotal)
    discount = to_money(discount)
    shipping = shipping_for(subtotal)
    tax = tax_for(subtotal)
    total = subtotal + shipping + tax - discount
    return PriceBreakdown(
        subtotal=subtotal,
        shipping_cost=shipping,
        tax=tax,
        discount=discount,
        total=total,
    )
