from decimal import Decimal

import pytest

from apps.cart.domain import Cart
from apps.cart.inventory import is_available
from apps.catalog.domain import Product
from apps.common.errors import InsufficientStock, NotFound
from apps.common.money import price_breakdown


def product(pid="mug", price="12.50", stock=5):
    return Product(id=pid, name=pid, price=Decimal(price), stock=stock)


@pytest.mark.parametrize(
    "requested, available, ok",
    [(1, 0, False), (5, 5, True), (6, 5, False), (1, 10, True)],
)
def test_guard_allows_exact_sellout(requested, available, ok):
    assert is_available(requested, available) is ok


def test_total_follows_every_mutation():
    cart = Cart(user_id="u")
    mug, tee = product("mug", "12.50", 10), product("tee", "7.25", 10)

    cart.add(mug, 2)
    cart.add(tee, 1)
    cart.add(mug, 1)
    assert cart.total == Decimal("44.75")

    cart.set_quantity(tee, 4)
    assert cart.total == Decimal("66.50")

    cart.remove("mug")
    assert cart.total == Decimal("29.00")
    assert cart.total == sum(l.line_total for l in cart.lines)


def test_add_merges_into_existing_line_and_refreshes_price():
    cart = Cart(user_id="u")
    cart.add(product(price="10.00"), 1)
    cart.add(product(price="11.00"), 2)

    assert len(cart.lines) == 1
    line = cart.lines[0]
    assert line.quantity == 3
    assert line.price == Decimal("11.00")


def test_cumulative_quantity_is_checked_and_cart_untouched_on_failure():
    cart = Cart(user_id="u")
    cart.add(product(stock=3), 2)

    with pytest.raises(InsufficientStock) as exc:
        cart.add(product(stock=3), 2)

    assert exc.value.context["product_id"] == "mug"
    assert exc.value.context["requested"] == 4
    assert cart.lines[0].quantity == 2


def test_set_quantity_of_missing_line():
    with pytest.raises(NotFound):
        Cart(user_id="u").set_quantity(product(), 1)


def test_remove_reports_absence():
    cart = Cart(user_id="u")
    cart.add(product(), 1)
    assert cart.remove("mug") is True
    assert cart.remove("mug") is False
    assert cart.is_empty


@pytest.mark.parametrize(
    "subtotal, shipping, tax, total",
    [
        ("100.00", "0.00", "8.00", "108.00"),
        ("30.00", "9.99", "2.40", "42.39"),
        ("99.99", "9.99", "8.00", "117.98"),
        ("0", "0.00", "0.00", "0.00"),
    ],
)
def test_price_breakdown(subtotal, shipping, tax, total):
    p = price_breakdown(Decimal(subtotal))
    assert p.shipping_cost == Decimal(shipping)
    assert p.tax == Decimal(tax)
    assert p.total == Decimal(total)
    assert p.total == p.subtotal + p.shipping_cost + p.tax - p.discount
