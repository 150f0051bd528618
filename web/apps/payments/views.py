"""HTTP views for the payment flow.

Successful responses and payment failures carry the order's
``payment_status`` and ``order_status`` so the storefront can reconcile
its state without fetching the order again.
"""

from django.conf import settings
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.common.errors import CommerceError, error_response, validation_response

from . import providers
from .schemas import OpenSessionIn, PaymentStatusOut, RecordFailureIn, VerifyCallbackIn


def _state(order) -> dict:
    return {
        "order_id": str(order.id),
        "payment_status": order.payment_status.value,
        "order_status": order.order_status.value,
    }


class PaymentsBaseView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "payments"


class PaymentSessionView(PaymentsBaseView):
    def post(self, request):
        """Open a processor session for a pending gateway order.

        Returns:
            Response: 201 with the session (amount in minor units) and the
            public key id for the checkout widget; 502 GATEWAY_ERROR; 409
            INVALID_TRANSITION when the order is not awaiting payment.
        """
        try:
            dto = OpenSessionIn.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)
        try:
            order, session = providers.get_payment_service().open_session(request.user.user_id, dto.order_id)
        except CommerceError as e:
            return error_response(e)

        body = {
            **_state(order),
            "gateway_order_id": session.id,
            "amount": session.amount,
            "currency": session.currency,
            "receipt": session.receipt,
            "key_id": settings.PAYMENT_GATEWAY_KEY_ID,
        }
        return Response(body, status=status.HTTP_201_CREATED)


class VerifyPaymentView(PaymentsBaseView):
    def post(self, request):
        try:
            dto = VerifyCallbackIn.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)
        try:
            order, changed = providers.get_payment_service().verify_callback(
                request.user.user_id,
                dto.order_id,
                dto.gateway_order_id,
                dto.gateway_payment_id,
                dto.signature,
            )
        except CommerceError as e:
            return error_response(e)
        return Response({**_state(order), "verified": True, "replay": not changed})


class PaymentFailureView(PaymentsBaseView):
    def post(self, request):
        try:
            dto = RecordFailureIn.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)
        try:
            order, _ = providers.get_payment_service().record_failure(
                request.user.user_id, dto.order_id, dto.reason
            )
        except CommerceError as e:
            return error_response(e)
        return Response({**_state(order), "cancellation_reason": order.cancellation_reason})


class PaymentStatusView(PaymentsBaseView):
    def get(self, request, order_id):
        try:
            order = providers.get_payment_service().status(request.user.user_id, order_id)
        except CommerceError as e:
            return error_response(e)
        return Response(PaymentStatusOut.from_order(order).model_dump(mode="json"))
