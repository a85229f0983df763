"""FastAPI application setup with lifespan and exception handlers."""

import asyncio
from contextlib import asynccontextmanager
import logging
from typing import Awaitable, Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shortfactory import __version__
from shortfactory.db import shutdown
from shortfactory.runtime import Runtime, build_runtime
from shortfactory.services.renderer import FFMPEG_INSTALL_HINT
from shortfactory.api.routes import router

logger = logging.getLogger(__name__)

RuntimeFactory = Callable[[], Awaitable[Runtime]]


def create_app(runtime_factory: RuntimeFactory = build_runtime) -> FastAPI:
    """Build the application around a runtime produced at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        Startup:
            - Initialize database schema and load persisted state
            - Check the render backend (rendering fails per job when missing)

        Shutdown:
            - Close database connections
        """
        logger.info("Starting Short Factory API...")
        runtime = await runtime_factory()
        app.state.runtime = runtime
        app.state.render_available = await asyncio.to_thread(runtime.providers.renderer.is_available)
        if not app.state.render_available:
            logger.warning(f"Rendering disabled: {FFMPEG_INSTALL_HINT}")
        logger.info("API startup complete")

        yield

        logger.info("Shutting down Short Factory API...")
        await shutdown()
        logger.info("API shutdown complete")

    app = FastAPI(
        title="Short Factory API",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS for the dashboard dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all exception handler to prevent stack traces in API responses."""
        logger.error(f"Unhandled exception in {request.method} {request.url.path}: {type(exc).__name__}: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc),
            }
        )

    return app


app = create_app()
