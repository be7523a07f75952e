"""Logging setup and the HTTP audit middleware."""

from __future__ import annotations

import logging
from time import perf_counter

from fastapi import FastAPI, Request

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

audit_logger = logging.getLogger("facility_booking.audit")


def configure_logging(level: str = "INFO") -> None:
    """Attach a stream handler to the package logger once."""
    logger = logging.getLogger("facility_booking")
    logger.setLevel(level.upper())
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def add_audit_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def audit_requests(request: Request, call_next):
        start = perf_counter()
        response = await call_next(request)
        duration_ms = (perf_counter() - start) * 1000
        client_ip = request.client.host if request.client else "unknown"
        audit_logger.info(
            "%s %s | status=%s | client=%s | duration=%.2fms",
            request.method,
            request.url.path,
            response.status_code,
            client_ip,
            duration_ms,
        )
        return response
