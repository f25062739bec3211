"""
FastAPI exception handlers mapping the error taxonomy to HTTP responses.

Both services register the same handlers so that a failure raised anywhere
in a request ends up as an ``{"detail", "error"}`` body with the status
code of its taxonomy kind.
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shared.errors.taxonomy import WeatherServiceError

logger = structlog.get_logger(__name__)


async def weather_service_error_handler(request: Request, exc: WeatherServiceError) -> JSONResponse:
    """Handle taxonomy errors raised by the orchestrators."""
    logger.warning(
        "request_rejected",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        error=exc.code,
        detail=exc.detail,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions raised by routing."""
    logger.warning(
        "http_exception",
        path=request.url.path,
        status_code=exc.status_code,
        detail=exc.detail,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unexpected_exception",
        path=request.url.path,
        error=str(exc),
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WeatherServiceError, weather_service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
