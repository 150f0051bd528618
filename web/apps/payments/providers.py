"""Select the payment processor implementation for the current settings."""

from django.conf import settings

from .adapters import GatewayStub
from .domain import GatewayPort
from .http_adapters import HttpGatewayClient
from .service import PaymentService

STUB_GATEWAY = GatewayStub()


def get_gateway() -> GatewayPort:
    if getattr(settings, "USE_HTTP_ADAPTERS", True):
        return HttpGatewayClient()
    return STUB_GATEWAY


def get_payment_service() -> PaymentService:
    return PaymentService(gateway=get_gateway())
