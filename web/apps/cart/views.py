"""HTTP views for the cart.

Views validate the body with pydantic, delegate to ``CartService`` and map
domain errors to responses. The caller is always ``request.user.user_id``,
as asserted by the identity gateway.
"""

from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.common.errors import CommerceError, error_response, validation_response

from . import providers
from .schemas import AddItemIn, CartOut, CartSummaryOut, UpdateQuantityIn, check_product_id


def _cart_body(cart) -> dict:
    return CartOut.from_cart(cart).model_dump()


class CartBaseView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "cart"


class CartView(CartBaseView):
    """GET the caller's cart, DELETE to clear it."""

    def get(self, request):
        cart = providers.get_cart_service().get_cart(request.user.user_id)
        return Response(_cart_body(cart))

    def delete(self, request):
        try:
            cart = providers.get_cart_service().clear(request.user.user_id)
        except CommerceError as e:
            return error_response(e)
        return Response(_cart_body(cart))


class CartSummaryView(CartBaseView):
    def get(self, request):
        s = providers.get_cart_service().summary(request.user.user_id)
        dto = CartSummaryOut(
            item_count=s.item_count,
            subtotal=s.subtotal,
            shipping_cost=s.shipping_cost,
            tax=s.tax,
            total=s.total,
        )
        return Response(dto.model_dump())


class CartItemsView(CartBaseView):
    def post(self, request):
        """Add a product to the cart.

        Returns:
            Response: 200 with the cart; 400 VALIDATION_ERROR; 404 NOT_FOUND
            for a missing/inactive product; 422 INSUFFICIENT_STOCK; 409
            CONFLICT when concurrent writes keep colliding.
        """
        try:
            dto = AddItemIn.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)
        try:
            cart = providers.get_cart_service().add_item(request.user.user_id, dto.product_id, dto.quantity)
        except CommerceError as e:
            return error_response(e)
        return Response(_cart_body(cart), status=status.HTTP_200_OK)


class CartItemDetailView(CartBaseView):
    def patch(self, request, product_id: str):
        try:
            check_product_id(product_id)
            dto = UpdateQuantityIn.model_validate(request.data)
        except (PydanticValidationError, ValueError) as e:
            return validation_response(e)
        try:
            cart = providers.get_cart_service().update_quantity(request.user.user_id, product_id, dto.quantity)
        except CommerceError as e:
            return error_response(e)
        return Response(_cart_body(cart))

    def delete(self, request, product_id: str):
        try:
            cart = providers.get_cart_service().remove_item(request.user.user_id, product_id)
        except CommerceError as e:
            return error_response(e)
        return Response(_cart_body(cart))
