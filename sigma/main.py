"""FastAPI application entry point for Sigma LMS.

This module initializes the FastAPI app, configures logging and middleware,
and binds the Contentful configuration, the API call tracker and the
response cache to the app for the lifetime of the process.
"""

import logging
import os
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from sigma.cache import ResponseCache
from sigma.contentful import (
    ContentfulClient,
    ContentfulConfig,
    load_config,
    validate_config,
)
from sigma.routes import api, pages
from sigma.tracker import ApiCallTracker

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("sigma")


# ============================================================================
# Environment Variable Loading
# ============================================================================

# Application settings
DATABASE_PATH = os.getenv("DATABASE_PATH", "sigma.db")
APP_VERSION = "0.1.0"


# ============================================================================
# Application Factory
# ============================================================================

def create_app(
    config: Optional[ContentfulConfig] = None,
    *,
    tracker: Optional[ApiCallTracker] = None,
    contentful: Optional[ContentfulClient] = None,
    preview_contentful: Optional[ContentfulClient] = None,
    database_path: str = DATABASE_PATH,
    clock: Callable[[], float] = time.time,
) -> FastAPI:
    """Build the app and its per-process collaborators.

    Args:
        config: Contentful settings; read from the environment when omitted
        tracker: Call tracker shared by the clients and the cache
        contentful: Delivery client override (tests)
        preview_contentful: Preview client override (tests)
        database_path: SQLite file for the response cache
        clock: Time source for cache expiry

    Returns:
        Configured FastAPI application
    """
    config = config or load_config()
    tracker = tracker or ApiCallTracker()

    if contentful is None:
        contentful = ContentfulClient(config, tracker)
    if preview_contentful is None and config.preview_token:
        preview_contentful = ContentfulClient(config, tracker, preview=True)

    cache = ResponseCache(database_path, tracker, clock=clock)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        """Application lifespan events."""
        # Startup
        logger.info("🚀 Starting Sigma LMS...")

        # Missing credentials are only a warning; CMS calls fail at request time
        try:
            validate_config(config)
            logger.info(
                "✓ Using Contentful space %s (environment: %s)",
                config.space_id, config.environment
            )
        except ValueError as e:
            logger.warning("⚠️  [contentful] %s", e)
            logger.warning("   Requests to Contentful will fail until this is fixed.")

        if preview_contentful is not None:
            logger.info("✓ Preview API enabled")

        cache.init()
        purged = cache.purge_expired()
        logger.info("✓ Response cache ready: %s (%d expired entries purged)", database_path, purged)

        yield

        # Shutdown
        logger.info("👋 Shutting down Sigma LMS...")
        await contentful.aclose()
        if preview_contentful is not None:
            await preview_contentful.aclose()

    app = FastAPI(
        title="Sigma LMS",
        description="Course, lesson and quiz content served from Contentful",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.tracker = tracker
    app.state.contentful = contentful
    app.state.preview_contentful = preview_contentful
    app.state.cache = cache

    # CORS middleware (the API is also consumed by a separate frontend)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Static files (CSS)
    static_path = Path(__file__).parent / "static"
    app.mount("/static", StaticFiles(directory=str(static_path)), name="static")

    @app.get("/health")
    async def health_check():
        """Health check endpoint - returns API status."""
        return {
            "status": "healthy",
            "app": "Sigma LMS",
            "version": APP_VERSION,
            "contentful_configured": config.is_configured,
            "contentful_environment": config.environment,
        }

    app.include_router(api.router)
    app.include_router(pages.router)

    return app


app = create_app()
