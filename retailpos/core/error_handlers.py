"""Exception handlers that render every failure as ``{"error": {...}}``."""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from retailpos.core.errors import DomainError
from retailpos.core.observability import log_event, request_id_for

ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
    429: "rate_limited",
    500: "internal_error",
}


def error_body(request: Request, status_code: int, message: str, details: list | None = None) -> dict:
    return {
        "error": {
            "code": ERROR_CODES.get(status_code, "http_error"),
            "message": message,
            "request_id": request_id_for(request),
            "path": request.url.path,
            "details": details,
        }
    }


def _respond(request: Request, status_code: int, message: str, **kwargs) -> JSONResponse:
    headers = kwargs.pop("headers", None)
    return JSONResponse(
        status_code=status_code,
        content=error_body(request, status_code, message, **kwargs),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    if isinstance(exc.detail, str):
        return _respond(request, exc.status_code, exc.detail, headers=exc.headers)
    return _respond(request, exc.status_code, "HTTP error", details=exc.detail, headers=exc.headers)


async def domain_exception_handler(request: Request, exc: DomainError):
    # Raised before the route commits; the session is closed without flushing.
    return _respond(request, exc.status_code, exc.message)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        location = [str(part) for part in err.get("loc", ()) if part != "body"]
        details.append(
            {
                "field": ".".join(location) or "body",
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type"),
            }
        )
    return _respond(request, 422, "Validation failed", details=details)


async def unhandled_exception_handler(request: Request, exc: Exception):
    log_event(
        "unhandled_exception",
        level=logging.ERROR,
        path=request.url.path,
        error=repr(exc),
        traceback=traceback.format_exc(limit=10),
    )
    return _respond(request, 500, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(DomainError, domain_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
