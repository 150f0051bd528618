"""HTTP views for the orders app.

Views are kept small: they validate requests with pydantic, delegate to the
``OrderMaterializer`` (checkout) or the ``OrderRepository`` (reads and
status transitions) and render domain errors as ``{"detail": CODE}``.

Idempotency: when an ``Idempotency-Key`` header is provided, checkout is
processed once per (caller, key). The first request creates a record and,
upon completion, stores the response. Retries with the same payload get the
stored response back with ``Idempotent-Replay: true``; the same key with a
different payload is a 409, and a retry that races the first request while
it is still running is a 409 as well.
"""

from django.core.paginator import Paginator
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from apps.common.errors import CommerceError, NotFound, ValidationError, error_response, validation_response

from . import providers
from .domain import PaymentMethod
from .idempotency import finalize, get_or_create_idempotent
from .repository import to_domain
from .schemas import CheckoutIn, OrderReadDTO, StatusUpdateIn
from .state_machine import OrderEvent

MAX_PAGE_SIZE = 100

# PUT /status/ target -> state machine event
STATUS_EVENTS = {
    "processing": OrderEvent.PROCESS,
    "shipped": OrderEvent.SHIP,
    "delivered": OrderEvent.DELIVER,
    "cancelled": OrderEvent.CANCEL,
}


def _order_body(order) -> dict:
    return OrderReadDTO.from_order(order).model_dump()


def _positive_int(raw, default: int) -> int:
    if raw in (None, ""):
        return default
    value = int(raw)
    if value < 1:
        raise ValueError(raw)
    return value


class OrdersCollectionView(APIView):
    """List the caller's orders (GET) or check out the cart (POST)."""

    throttle_classes = [ScopedRateThrottle]

    def get_throttles(self):
        # DRF evaluates throttles in initial(), before get/post
        self.throttle_scope = "orders_read" if self.request.method == "GET" else "checkout"
        return [throttle() for throttle in self.throttle_classes]

    def get(self, request):
        try:
            page = _positive_int(request.GET.get("page"), 1)
            page_size = min(_positive_int(request.GET.get("page_size"), 20), MAX_PAGE_SIZE)
        except ValueError:
            return error_response(ValidationError("page and page_size must be positive integers"))

        qs = providers.get_order_repository().list_for_user(
            request.user.user_id,
            order_status=request.GET.get("order_status"),
            payment_status=request.GET.get("payment_status"),
        )
        p = Paginator(qs, page_size)
        page_obj = p.get_page(page)

        return Response(
            {
                "count": p.count,
                "page": page_obj.number,
                "page_size": page_size,
                "results": [_order_body(to_domain(row)) for row in page_obj.object_list],
            },
            status=200,
        )

    def post(self, request):
        """Check out the caller's cart.

        Returns:
            Response: One of the following responses.
            - 201 with the order when it is created.
            - the stored status and body when the same idempotency key and
              payload are retried.
            - 409 IDEMPOTENCY_CONFLICT when the key is reused with a
              different payload, or the first request is still running.
            - 400 VALIDATION_ERROR / EMPTY_CART.
            - 404 NOT_FOUND when a product disappeared.
            - 422 INSUFFICIENT_STOCK naming the offending product.
            - 409 CONFLICT when the cart changed during checkout.
            - 503 UPSTREAM_UNAVAILABLE when the catalog is unreachable.
        """
        user_id = request.user.user_id
        idem_key = request.headers.get("Idempotency-Key")

        # 1) Pydantic validation
        try:
            dto = CheckoutIn.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)

        # 2) Idempotency get-or-create
        rec = None
        if idem_key:
            try:
                existing, rec = get_or_create_idempotent(user_id, idem_key, request.data)
            except ValueError:
                return Response({"detail": "IDEMPOTENCY_CONFLICT"}, status=status.HTTP_409_CONFLICT)
            if existing:
                if not rec.response_status:
                    return Response(
                        {"detail": "IDEMPOTENCY_CONFLICT", "message": "Request with this key is still in progress"},
                        status=status.HTTP_409_CONFLICT,
                    )
                resp = Response(rec.response_body, status=rec.response_status)
                resp["Idempotent-Replay"] = "true"
                return resp

        # 3) Domain
        try:
            order = providers.get_order_materializer().create_order(
                user_id,
                shipping_address=dto.shipping_address.to_domain(),
                billing_address=dto.billing_address.to_domain() if dto.billing_address else None,
                payment_method=PaymentMethod(dto.payment_method),
                discount=dto.discount,
                notes=dto.notes,
            )
        except CommerceError as e:
            resp = error_response(e)
            if rec:
                finalize(rec, resp.status_code, resp.data)
            return resp
        except Exception:
            # unexpected failure: free the key so the client can retry
            if rec:
                rec.delete()
            raise

        # 4) Response
        body = _order_body(order)
        if rec:
            body = finalize(rec, status.HTTP_201_CREATED, body, order_id=order.id)
        return Response(body, status=status.HTTP_201_CREATED)


class RetrieveOrderView(APIView):
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "orders_read"

    def get(self, request, oid):
        order = providers.get_order_repository().get_for_user(oid, request.user.user_id)
        if order is None:
            return error_response(NotFound("Order not found"))
        return Response(_order_body(order), status=200)


class OrderStatusView(APIView):
    """Move an order through fulfillment or cancel it."""

    throttle_classes = [ScopedRateThrottle]
    throttle_scope = "checkout"

    def put(self, request, oid):
        try:
            dto = StatusUpdateIn.model_validate(request.data)
        except PydanticValidationError as e:
            return validation_response(e)

        data = {}
        if dto.status == "shipped":
            data["tracking_number"] = dto.tracking_number
        elif dto.status == "cancelled":
            data["reason"] = dto.reason

        try:
            order, _ = providers.get_order_repository().transition(
                oid, request.user.user_id, STATUS_EVENTS[dto.status], **data
            )
        except CommerceError as e:
            return error_response(e)
        return Response(_order_body(order), status=200)
