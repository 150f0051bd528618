"""Error kinds shared by the cart, checkout and payment flows.

Every domain failure is a ``CommerceError`` subclass. The first argument is
the machine-readable code (so ``str(exc)`` is the code, as the views and the
idempotency store expect) and ``message`` carries the human-readable text.
Extra keyword context (product id, order statuses) is kept on ``context``
and rendered into the error body.
"""

from rest_framework import status
from rest_framework.response import Response


class CommerceError(ValueError):
    code = "ERROR"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Request failed"

    def __init__(self, message: str | None = None, **context):
        super().__init__(self.code)
        self.message = message or self.default_message
        self.context = context

    def to_body(self) -> dict:
        body = {"detail": self.code, "message": self.message}
        body.update({k: v for k, v in self.context.items() if v is not None})
        return body


class NotFound(CommerceError):
    code = "NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class EmptyCart(CommerceError):
    code = "EMPTY_CART"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Cart is empty"


class InsufficientStock(CommerceError):
    code = "INSUFFICIENT_STOCK"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Not enough stock"


class InvalidSignature(CommerceError):
    code = "INVALID_SIGNATURE"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Payment signature verification failed"


class Mismatch(CommerceError):
    code = "MISMATCH"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Payment reference does not belong to this order"


class InvalidTransition(CommerceError):
    code = "INVALID_TRANSITION"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Transition not allowed from the current order state"


class Conflict(CommerceError):
    code = "CONFLICT"
    http_status = status.HTTP_409_CONFLICT
    default_message = "Concurrent update conflict"


class GatewayError(CommerceError):
    code = "GATEWAY_ERROR"
    http_status = status.HTTP_502_BAD_GATEWAY
    default_message = "Payment processor request failed"


class ValidationError(CommerceError):
    code = "VALIDATION_ERROR"
    http_status = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class UpstreamUnavailable(CommerceError):
    code = "UPSTREAM_UNAVAILABLE"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Catalog service unavailable"


def error_response(exc: CommerceError, **extra) -> Response:
    """Render a domain error as a DRF response with its HTTP status."""
    body = exc.to_body()
    body.update({k: v for k, v in extra.items() if v is not None})
    return Response(body, status=exc.http_status)


def validation_response(exc: Exception) -> Response:
    """Render a pydantic validation failure as ``VALIDATION_ERROR``."""
    return error_response(ValidationError(str(exc)))
