"""Caller identity for the storefront API.

Authentication happens upstream: the identity gateway verifies the login
token and forwards the verified user identifier in the ``X-User-Id``
header. This module only turns that header into a DRF user so views can
scope carts and orders by ``request.user.user_id``.
"""

import re
from dataclasses import dataclass

from rest_framework.authentication import BaseAuthentication

from .middleware import USER_ID_CTX

USER_ID_RE = re.compile(r"^[A-Za-z0-9_.:@-]{1,64}$")


@dataclass(frozen=True)
class CallerIdentity:
    """Verified caller, as asserted by the identity gateway."""

    user_id: str

    @property
    def pk(self) -> str:
        # DRF throttles key on ``user.pk``
        return self.user_id

    @property
    def is_authenticated(self) -> bool:
        return True


class IdentityHeaderAuthentication(BaseAuthentication):
    """Trust the ``X-User-Id`` header set by the identity gateway.

    Requests without the header are left unauthenticated (DRF answers 401
    through ``IsAuthenticated``). A malformed id is treated the same way.
    """

    HEADER = "HTTP_X_USER_ID"

    def authenticate(self, request):
        raw = request.META.get(self.HEADER, "").strip()
        if not raw or not USER_ID_RE.match(raw):
            return None
        USER_ID_CTX.set(raw)
        return CallerIdentity(user_id=raw), None

    def authenticate_header(self, request) -> str:
        return "X-User-Id"
