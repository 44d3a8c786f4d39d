"""Per-service audit trail of HTTP calls, tagged with the booking action they perform."""
from __future__ import annotations

import logging
import re
import uuid
from pathlib import Path
from time import time
from typing import Optional

from fastapi import FastAPI, Request

from .config import get_settings

REQUEST_ID_HEADER = "X-Request-ID"

# (method, path pattern, action); the first match wins.
_ACTIONS = (
    ("POST", re.compile(r"^/bookings$"), "submit"),
    ("POST", re.compile(r"^/bookings/sweep$"), "sweep"),
    ("POST", re.compile(r"^/bookings/\d+/approve$"), "approve"),
    ("POST", re.compile(r"^/bookings/\d+/reject$"), "reject"),
    ("POST", re.compile(r"^/bookings/\d+/cancel$"), "cancel"),
    ("GET", re.compile(r"^/bookings/availability$"), "preview"),
)


def classify(method: str, path: str) -> str:
    for action_method, pattern, action in _ACTIONS:
        if method == action_method and pattern.match(path):
            return action
    return "read" if method == "GET" else "other"


def _build_logger(service_name: str) -> logging.Logger:
    logger = logging.getLogger(f"audit.{service_name}")
    if logger.handlers:
        return logger

    log_dir = Path(get_settings().audit_log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.setLevel(logging.INFO)
    handler = logging.FileHandler(log_dir / f"{service_name}.log")
    handler.setFormatter(
        logging.Formatter("%(asctime)s | %(levelname)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.addHandler(handler)
    return logger


def add_audit_middleware(app: FastAPI, service_name: str) -> None:
    """Log every request with its action, outcome and request id.

    The request id is taken from ``X-Request-ID`` when the caller sends one
    and echoed back on the response either way.
    """

    logger = _build_logger(service_name)

    @app.middleware("http")
    async def audit_logger(request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        action = classify(request.method, request.url.path)
        start = time()
        response = await call_next(request)
        duration_ms = (time() - start) * 1000
        client_ip: Optional[str] = None
        if request.client:
            client_ip = request.client.host
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "%s | action=%s | %s %s | status=%s | client=%s | duration=%.2fms",
            request_id,
            action,
            request.method,
            request.url.path,
            response.status_code,
            client_ip or "unknown",
            duration_ms,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
