import pytest

from apps.cart.service import CartService
from apps.orders.domain import Address, PaymentMethod
from apps.orders.materializer import OrderMaterializer

ADDRESS = Address("Asha", "Rao", "12 MG Road", "Bengaluru", "KA", "560001", "IN")


@pytest.fixture
def place_order(catalog):
    """Check out a one-line cart (30.00 + 9.99 shipping + 2.40 tax)."""

    def _place(user_id="user-1", method=PaymentMethod.GATEWAY):
        catalog.put("mug", "30.00", 100)
        CartService(catalog=catalog).add_item(user_id, "mug", 1)
        return OrderMaterializer(catalog=catalog).create_order(
            user_id, shipping_address=ADDRESS, payment_method=method
        )

    return _place
