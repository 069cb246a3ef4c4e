"""Structured JSON logging and per-request correlation ids."""

import json
import logging
import time
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

from fastapi import Request

from retailpos.core.config import settings

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="-")
logger = logging.getLogger("retailpos.api")

REQUEST_ID_HEADER = "X-Request-ID"


def setup_observability(level: int = logging.INFO) -> None:
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def get_request_id() -> str:
    return request_id_ctx.get()


def request_id_for(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id()


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Write one JSON line tagged with the current request id."""
    logger.log(level, json.dumps({"event": event, "request_id": get_request_id(), **fields}, default=str))


async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    request.state.request_id = request_id
    token = request_id_ctx.set(request_id)
    started = time.perf_counter()
    response = None
    try:
        response = await call_next(request)
    finally:
        log_event(
            "request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code if response is not None else 500,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        request_id_ctx.reset(token)

    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-API-Timeout-Hint-Ms"] = str(settings.api_timeout_hint_ms)
    return response
