"""Global error handlers. Every error renders as {error, details, timestamp}."""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from knowva.auth.exceptions import AuthError
from knowva.auth.schemas import ErrorResponse

logger = structlog.get_logger()


def error_response(status_code: int, error: str, details: str | None = None, **kwargs: Any) -> JSONResponse:  # noqa: ANN401
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True), **kwargs)


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
        """Map typed service errors to their status codes."""
        logger.info(
            "auth_error",
            path=request.url.path,
            error_type=type(exc).__name__,
            status_code=exc.status_code,
        )
        return error_response(exc.status_code, exc.message, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request bodies: list each offending field."""
        fields = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}" for err in exc.errors()
        )
        return error_response(422, "Invalid request body", fields or None)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all: log the traceback, never leak it."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return error_response(500, "Internal server error")
