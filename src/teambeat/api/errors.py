"""
Error responses.

Every failure leaves the API as ``{"success": false, "error": ...}``:
HTTPExceptions keep their status and detail, validation errors become 400
with the offending fields under ``details``, and anything else is logged
and reported as a generic 500.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "error": error, **extra}),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # ctx may hold the raw exception object, which is not serializable
    details = [
        {key: value for key, value in error.items() if key != "ctx"}
        for error in exc.errors()
    ]
    return error_response(
        status.HTTP_400_BAD_REQUEST, "Invalid request data", details=details
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
