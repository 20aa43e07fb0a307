"""Uniform error responses.

Every API failure is rendered as ErrorResponse: {error, message, request_id, details}.
Lifecycle errors keep their stable kind; FastAPI/Starlette errors are mapped by
status code so clients parse one shape.
"""

from __future__ import annotations

import logging
from typing import cast

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from notes_backend.errors import AttachmentError
from notes_backend.schemas.errors import ErrorResponse

logger = logging.getLogger(__name__)


def _map_http_status_to_error(status_code: int) -> str:
    mapping: dict[int, str] = {
        400: "bad_request",
        401: "unauthorized",
        403: "forbidden",
        404: "not_found",
        409: "conflict",
        413: "payload_too_large",
        422: "validation_error",
        429: "rate_limited",
    }
    return mapping.get(status_code, f"http_{status_code}")


async def _attachment_error_handler(request: Request, exc: Exception) -> JSONResponse:
    err = cast(AttachmentError, exc)
    if err.status_code >= 500:
        logger.warning(
            "attachment operation failed error=%s request_id=%s path=%s",
            err.error,
            getattr(request.state, "request_id", None),
            request.url.path,
        )
    payload = ErrorResponse(
        error=err.error,
        message=err.message,
        request_id=getattr(request.state, "request_id", None),
        details=err.details,
    )
    return JSONResponse(
        status_code=err.status_code, content=jsonable_encoder(payload, exclude_none=True)
    )


async def _http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    http_exc = cast(StarletteHTTPException, exc)
    payload = ErrorResponse(
        error=_map_http_status_to_error(http_exc.status_code),
        message=str(http_exc.detail),
        request_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(
        status_code=http_exc.status_code,
        content=jsonable_encoder(payload, exclude_none=True),
        headers=getattr(http_exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    validation_exc = cast(RequestValidationError, exc)
    payload = ErrorResponse(
        error="validation_error",
        message="Request validation error",
        request_id=getattr(request.state, "request_id", None),
        details=validation_exc.errors(),
    )
    return JSONResponse(status_code=422, content=jsonable_encoder(payload, exclude_none=True))


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.exception(
        "unhandled exception request_id=%s method=%s path=%s",
        request_id,
        request.method,
        request.url.path,
        exc_info=exc,
    )
    payload = ErrorResponse(
        error="internal_error",
        message="Internal server error",
        request_id=request_id,
    )
    return JSONResponse(status_code=500, content=jsonable_encoder(payload, exclude_none=True))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AttachmentError, _attachment_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
