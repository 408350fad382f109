"""
Exception handlers — every error leaves the API in the standard envelope.

Taxonomy:
    400 validation, 401 missing/invalid token, 403 role or ownership,
    404 not found, 409 duplicate key, 500 anything else.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError
from starlette.exceptions import HTTPException as StarletteHTTPException

from skillup.core.config import settings
from skillup.utils.response import error_response

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message=str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", message)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response(message=message),
    )


async def store_exception_handler(request: Request, exc: APIError):
    if exc.code == UNIQUE_VIOLATION:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content=error_response(message="A record with these details already exists."),
        )
    logger.error("Store error on %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(message="Server error."),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(message=str(exc) if settings.DEBUG else "Server error."),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(APIError, store_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
