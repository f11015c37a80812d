"""Render errors in the ``{"error", "message", "details"}`` envelope.

Covers the ClixenException hierarchy and FastAPI's request validation
errors, so the frontend parses a single error shape.
"""

import logging
from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from ..exceptions import ClixenException, ErrorCode

logger = logging.getLogger(__name__)

# Quotas and capacity reset slowly; clients are told to back off for a minute.
RETRY_AFTER_SECONDS = 60


async def clixen_exception_handler(request: Request, exc: ClixenException) -> JSONResponse:
    """4xx are logged as warnings, 5xx (including upstream 502s) as errors."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "%s %s -> %s",
        request.method, request.url.path, exc.error_code.value,
        extra={
            "error_code": exc.error_code.value,
            "status_code": exc.status_code,
            "details": exc.details,
        },
    )

    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if exc.status_code in (429, 503) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body, path and query validation failures: 422 with the pydantic error list."""
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=422,
        content={
            "error": ErrorCode.VALIDATION_ERROR.value,
            "message": f"{location}: {message}" if location else message,
            "details": {"errors": errors},
        },
    )
