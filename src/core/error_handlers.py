"""Global exception handlers for FastAPI application."""

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from loguru import logger

from src.core.exceptions import AppError, MethodNotAllowedError


def register_exception_handlers(app: FastAPI) -> None:
    """Register all global exception handlers on the FastAPI app.

    Note: The nested handler functions are registered via decorators and used by FastAPI
    at runtime, but static analysis tools cannot detect this usage pattern.
    """

    @app.exception_handler(MethodNotAllowedError)
    def method_not_allowed_handler(  # pyright: ignore[reportUnusedFunction]
        request: Request, exc: MethodNotAllowedError
    ) -> PlainTextResponse:
        logger.debug(f"Rejected {request.method} {request.url.path}")
        return PlainTextResponse(
            exc.message, status_code=exc.status_code, headers={"Allow": "POST"}
        )

    @app.exception_handler(AppError)
    def app_error_handler(  # pyright: ignore[reportUnusedFunction]
        _: Request, exc: AppError
    ) -> PlainTextResponse:
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc.message}")
        else:
            logger.warning(f"{type(exc).__name__}: {exc.message}")
        return PlainTextResponse(exc.message, status_code=exc.status_code)

    @app.exception_handler(Exception)
    def unhandled_handler(  # pyright: ignore[reportUnusedFunction]
        _: Request, exc: Exception
    ) -> PlainTextResponse:
        logger.exception(f"Unhandled exception: {exc}")
        return PlainTextResponse("Internal server error", status_code=500)
