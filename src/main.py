"""FastAPI application for the Turnstile-gated upload service."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from loguru import logger
import uvicorn

from src.api.endpoints.site import STATIC_DIR, render_index_page
from src.api.router import api_router
from src.core.config import Settings, load_settings
from src.core.error_handlers import register_exception_handlers
from src.core.logging_config import configure_logging
from src.services.captcha import TurnstileVerifier
from src.storage.factory import build_storage


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application. Settings are loaded from the environment at startup if omitted."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application startup and shutdown events."""
        resolved = settings or load_settings()
        configure_logging(resolved.log_level, resolved.log_dir)
        logger.info("Starting upload service...")

        app.state.settings = resolved
        app.state.storage = build_storage(resolved)
        app.state.index_html = render_index_page(resolved.turnstile_sitekey)
        verifier = TurnstileVerifier(resolved.turnstile_secret)
        app.state.verifier = verifier
        logger.success("Application startup complete")
        yield
        logger.info("Shutting down upload service...")
        await verifier.aclose()

    app = FastAPI(title="Uploader", lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(api_router)
    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
    return app


app = create_app()


def run() -> None:
    """Run the service with uvicorn."""
    settings = load_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        timeout_keep_alive=60,
    )


if __name__ == "__main__":
    run()
