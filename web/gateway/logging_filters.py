"""Logging filters for enriching log records with request context.

The filter injects the current request id and the caller's user id into
log records, using the ContextVars populated by the gateway middleware and
the identity authentication class. Payment audit lines (signature failures,
session mismatches) rely on both values being present.
"""

from logging import Filter, LogRecord

from .middleware import REQUEST_ID_CTX, USER_ID_CTX


class RequestIdFilter(Filter):
    """Attach ``request_id`` and ``user_id`` attributes to log records.

    Missing values are rendered as a hyphen so formatters can reference
    ``%(request_id)s`` unconditionally.
    """

    def filter(self, record: LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = REQUEST_ID_CTX.get()
        if not hasattr(record, "user_id"):
            record.user_id = USER_ID_CTX.get()
        return True
