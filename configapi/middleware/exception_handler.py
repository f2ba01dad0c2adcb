"""Exception handlers for structured error responses."""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..exceptions import (
    ConfigApiException,
    ErrorCode,
    StorageUnavailableError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def config_api_exception_handler(request: Request, exc: ConfigApiException) -> JSONResponse:
    """
    Handle custom exceptions and return structured JSON responses.

    Client errors (4xx) are logged at WARNING, everything else at ERROR.
    Upstream failures log the original error; the response stays generic.

    Args:
        request: FastAPI request object
        exc: ConfigApiException instance

    Returns:
        JSONResponse with error details
    """
    extra = {
        "error_code": exc.error_code.value,
        "path": request.url.path,
        "method": request.method,
        "details": exc.details,
        "status_code": exc.status_code,
    }
    if isinstance(exc, UpstreamError) and exc.original_error is not None:
        extra["upstream_error"] = repr(exc.original_error)

    if exc.status_code < 500:
        logger.warning(f"ConfigApiException: {exc.error_code.value}", extra=extra)
    else:
        logger.error(f"ConfigApiException: {exc.error_code.value}", extra=extra)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def pool_timeout_handler(request: Request, exc: PoolTimeoutError) -> JSONResponse:
    """Pool exhaustion surfaced outside ``Database.session``."""
    return await config_api_exception_handler(request, StorageUnavailableError())


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log full detail, return a generic 500."""
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={"path": request.url.path, "method": request.method},
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": ErrorCode.INTERNAL_ERROR.value,
            "message": "Internal server error",
            "details": {},
        },
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render body/query validation failures as 400 ``VALIDATION_ERROR``."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
    field = loc[-1] if loc else None
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return await config_api_exception_handler(request, ValidationError(message, field=field))
