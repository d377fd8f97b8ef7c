"""Error responses.

Every error leaves the API as {"message": ..., "code": ...}. The message is
meant to be shown to the user as-is; the code lets a client tell business
outcomes ("event_full", "already_registered") apart from generic failures.

- HTTPException → its status, detail as message
- request validation → 400 with the first validation message
- anything unexpected → opaque 500, logged with traceback
"""

from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()

STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
}


class ApiError(HTTPException):
    """HTTPException with an explicit machine-readable code."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        super().__init__(status_code=status_code, detail=message)
        self.code = code


def error_body(message: str, code: str) -> dict:
    return {"message": message, "code": code}


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = getattr(exc, "code", None) or STATUS_CODES.get(exc.status_code, "error")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail), code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = first.get("loc", ())[-1] if first.get("loc") else None
        message = f"{field}: {first['msg']}" if field not in (None, "body") else first["msg"]
    return JSONResponse(status_code=400, content=error_body(message, "validation_error"))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "eventhub.unhandled_error",
        path=request.url.path,
        method=request.method,
    )
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "internal_error"),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
