"""Middleware that assigns and propagates a request identifier.

Every incoming HTTP request receives a request identifier. The value comes
from the ``X-Request-Id`` header when the storefront UI or the identity
gateway already assigned one, otherwise a UUIDv4 is generated. The id is
stored on the request and in a context variable so logging and outgoing
calls to the catalog and the payment processor can carry it without
passing it explicitly.

The response always echoes the id in ``X-Request-ID``.
"""

import contextvars
import os
import uuid

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
USER_ID_CTX = contextvars.ContextVar("user_id", default="-")
MAX_API_BYTES = int(os.getenv("API_MAX_BYTES", str(1 * 1024 * 1024)))


class RequestIdMiddleware(MiddlewareMixin):
    """Django middleware that sets and returns a per-request identifier.

    Attributes:
        HEADER (str): Incoming header name in ``request.META`` casing.
        RESPONSE_HEADER (str): Header returned on responses.
    """

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def process_request(self, request):
        """Attach a request id to the request and the context variable.

        The caller identity is reset here and filled in later by the DRF
        authentication class, so log lines from a previous request on the
        same worker thread never leak a stale user id.
        """
        rid = request.META.get(self.HEADER)
        if not rid:
            rid = str(uuid.uuid4())
        request.request_id = rid
        REQUEST_ID_CTX.set(rid)
        USER_ID_CTX.set("-")

    def process_response(self, request, response):
        rid = getattr(request, "request_id", REQUEST_ID_CTX.get())
        response[self.RESPONSE_HEADER] = rid
        return response


class ApiSizeLimitMiddleware(MiddlewareMixin):
    """Reject oversized API payloads before they reach the views."""

    def process_request(self, request):
        if request.path.startswith("/api/"):
            clen = request.META.get("CONTENT_LENGTH")
            if clen and clen.isdigit() and int(clen) > MAX_API_BYTES:
                return JsonResponse(
                    {"detail": "PAYLOAD_TOO_LARGE", "message": "Request body exceeds the API limit"},
                    status=413,
                )
