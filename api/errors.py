"""
Mapping from marketplace errors to HTTP responses.

Every error body has the shape {"error": "<message>"}.
"""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from domain.errors import (
    AlreadyOwnedError,
    CapacityExhaustedError,
    MarketplaceError,
    NotFoundError,
    StorageTimeoutError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def status_for(error: MarketplaceError) -> int:
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, (ValidationError, AlreadyOwnedError, CapacityExhaustedError)):
        return 400
    if isinstance(error, StorageTimeoutError):
        return 504
    return 500


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc)
    message = exc.message if status_code != 500 else "Internal server error"
    return JSONResponse(status_code=status_code, content={"error": message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed query or body fields are a 400 like any other validation failure."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = first.get("msg", "Invalid request")
    return JSONResponse(status_code=400, content={"error": f"{location}: {message}" if location else message})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )
