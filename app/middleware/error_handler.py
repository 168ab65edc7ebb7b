"""Error handling middleware."""

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.exceptions import AppException, ValidationException

logger = structlog.get_logger(__name__)


def _error_body(request: Request, error: str, message: object) -> dict:
    return {"error": error, "message": message, "path": str(request.url)}


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response carrying the exception's error code
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.error_code, exc.message),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle HTTP exceptions raised by the framework (404 routes, 405, ...)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "HTTPException", exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle request validation errors as 400 ValidationError.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response with validation details
    """
    body = _error_body(request, ValidationException.error_code, "Invalid input data")
    body["details"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=body)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected exceptions and hide their details from the caller."""
    logger.exception(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "InternalServerError", "An unexpected error occurred"),
    )
