from django.db import connection
from django.http import JsonResponse

from apps.catalog.http_adapters import catalog_cb
from apps.payments.http_adapters import gateway_cb


def health_view(_request):
    """Report database reachability and the state of each circuit breaker.

    Returns 503 only when the database is down; an open breaker degrades a
    single collaborator and is reported without failing the health check.
    """
    db_ok = False
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
        db_ok = True
    except Exception:
        db_ok = False

    breakers = {cb.name: cb.snapshot() for cb in (catalog_cb, gateway_cb)}
    code = 200 if db_ok else 503
    return JsonResponse(
        {"ok": db_ok, "components": {"db": {"ok": db_ok}, "circuits": breakers}},
        status=code,
    )
