"""
FastAPI application for caption burn-in and video combining.

Uploaded videos, caption tracks and outputs live in one storage directory
that is also served under /uploads.
"""

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from caption_burner.api import routes
from caption_burner.config import Settings, get_settings
from caption_burner.logging_config import setup_logging
from caption_burner.models.schemas import HealthResponse
from caption_burner.services import (
    CaptionPipeline,
    CaptionWriter,
    CombinePipeline,
    PathResolver,
    RetentionSweeper,
    Transcoder,
)

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, configure_logging: bool = True) -> FastAPI:
    """
    Build the application and its services from one Settings instance.

    Args:
        settings: Application settings (environment-derived if omitted)
        configure_logging: Install the root log handler

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = get_settings()
    if configure_logging:
        setup_logging(settings)

    resolver = PathResolver(settings.storage_dir)
    resolver.ensure_root()
    transcoder = Transcoder(settings, resolver)
    sweeper = RetentionSweeper(resolver.root, settings.retention_hours)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Logs startup info and runs the retention sweeper when enabled.
        """
        logger.info("Starting Caption Burner API")
        logger.info(f"Log level: {settings.log_level}")
        logger.info(f"Storage directory: {resolver.root}")
        logger.info(f"Caption profile: {settings.caption_profile} ({transcoder.profile['video_codec']})")

        cleanup_task = None
        if sweeper.enabled:
            logger.info(f"Retention: {settings.retention_hours}h, sweep every {settings.cleanup_interval}s")
            await asyncio.to_thread(sweeper.sweep)
            cleanup_task = asyncio.create_task(sweeper.run_forever(settings.cleanup_interval))

        yield

        if cleanup_task is not None:
            cleanup_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await cleanup_task

        logger.info("Shutting down Caption Burner API")

    app = FastAPI(
        title="Caption Burner API",
        description="Burn caption text into uploaded videos and combine videos",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.resolver = resolver
    app.state.caption_pipeline = CaptionPipeline(settings, resolver, CaptionWriter(), transcoder)
    app.state.combine_pipeline = CombinePipeline(resolver, transcoder)

    @app.middleware("http")
    async def limit_body_size(request: Request, call_next):
        """Reject bodies whose declared size exceeds max_body_size before parsing."""
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > settings.max_body_size:
            logger.warning(f"Rejected {request.url.path}: body of {content_length} bytes")
            return JSONResponse(status_code=413, content={"error": "Request body too large."})
        return await call_next(request)

    # Outermost, so early 413s also get CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Invalid request to {request.url.path}: {exc.errors()}")
        return JSONResponse(status_code=400, content={"error": "Invalid request body."})

    app.include_router(routes.router)

    @app.get("/", response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """
        Health check endpoint.

        Returns:
            Fixed status payload with the current timestamp
        """
        return HealthResponse(timestamp=datetime.now(timezone.utc))

    app.mount("/uploads", StaticFiles(directory=resolver.root), name="uploads")

    return app


def main() -> None:
    """Run the API with uvicorn using the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
    )


if __name__ == "__main__":
    main()
