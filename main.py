"""
FastAPI application entry point for the creative batch editor.
"""

# Load .env first so every module sees the variables
from dotenv import load_dotenv
load_dotenv()

import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from creative_editor.api.editor import router as editor_router
from creative_editor.config import get_settings

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    settings = get_settings()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=(
            "Detect text on a master creative, rewrite it, and propagate the edit "
            "across a batch of image variants with a Gemini image model."
        ),
        version=settings.VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    cors_origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(editor_router)

    @app.on_event("startup")
    async def startup_event():
        """Initialize services on startup."""
        from creative_editor.logging_config import setup_logging
        setup_logging(log_dir=settings.LOG_DIR, log_level=settings.LOG_LEVEL)

        logger.info("Starting batch runner...")
        from creative_editor.worker import start_runner
        await start_runner()

    @app.on_event("shutdown")
    async def shutdown_event():
        """Wait for running batches on shutdown."""
        try:
            logger.info("Stopping batch runner...")
            from creative_editor.worker import stop_runner
            await stop_runner()
        except Exception as e:
            logger.warning(f"Error stopping batch runner: {e}")

    return app


# Application instance
app = create_app()


def run():
    """Run the application with uvicorn."""
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    run()
