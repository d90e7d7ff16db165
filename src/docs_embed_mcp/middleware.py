"""Rate limiting and exception handlers for the docs-embed-mcp server."""

import json
import logging

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from . import config
from .errors import (
    DocsEmbedError,
    FeatureConflict,
    NotFound,
    ValidationFailure,
)
from .models.base import ErrorResponse

logger = logging.getLogger(__name__)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[config.RATE_LIMIT],
    enabled=True,
)

ERROR_STATUS = {
    ValidationFailure: 400,
    NotFound: 404,
    FeatureConflict: 409,
}


def status_for(exc: DocsEmbedError) -> int:
    for error_type, status_code in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return 500


async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Return HTTP 429 with a Retry-After header."""
    response = JSONResponse(status_code=429, content={"error": "too_many_requests"})
    response.headers["Retry-After"] = (
        str(exc.retry_after) if hasattr(exc, "retry_after") else "1"
    )
    return response


async def docs_embed_error_handler(request: Request, exc: DocsEmbedError) -> Response:
    """Map pipeline errors onto HTTP status codes with an ErrorResponse body."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} in {request.url.path}: {exc.message}")
    else:
        logger.info(f"{type(exc).__name__} in {request.url.path}: {exc.message}")

    body = ErrorResponse(
        error=type(exc).__name__,
        detail=exc.message,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Format request validation errors with field paths and received values.
    """
    errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"][1:])

        error_detail = {
            "field": field_path
            if field_path
            else error["loc"][-1]
            if error["loc"]
            else "unknown",
            "message": error["msg"],
            "type": error["type"],
        }

        if "input" in error:
            input_value = error["input"]
            if isinstance(input_value, Exception):
                error_detail["received_value"] = str(input_value)
            else:
                try:
                    json.dumps(input_value)
                    error_detail["received_value"] = input_value
                except (TypeError, ValueError):
                    error_detail["received_value"] = str(input_value)

        errors.append(error_detail)

    error_response = {
        "error": "validation_error",
        "message": "Request validation failed",
        "details": errors,
        "examples": {
            "embed": {
                "crate_name": "serde",
                "version": "1.0.200",  # Optional, defaults to latest
                "features": ["derive"],
            },
            "query": {
                "crate_name": "serde",
                "query": "derive a serializer",
                "limit": "5",  # String accepted for numeric parameters
            },
        },
    }

    return JSONResponse(status_code=422, content=error_response)
