"""JSON logging and request-id middleware for the satellite services."""

import logging
import uuid

from fastapi import FastAPI, Request
from pythonjsonlogger import jsonlogger


def json_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"))
        logger.addHandler(h)
        logger.setLevel(logging.INFO)
    return logger


def install_request_id(app: FastAPI, logger: logging.Logger) -> None:
    """Echo or mint ``X-Request-ID`` and log one line per request."""

    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = rid
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            logger.info(
                "request handled",
                extra={"request_id": rid, "path": request.url.path, "method": request.method, "status": status_code},
            )
        response.headers["X-Request-ID"] = rid
        return response
