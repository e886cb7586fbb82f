"""
FastAPI backend for the Vessel Noon Logbook.

Provides REST API endpoints for:
- Free-text log entries and report history
- Voyage lifecycle (start, rename, delete) and exports (GPX, text)
- Manual report sending and runtime status
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from api.config import settings
from api.middleware import setup_middleware
from api.routers.logbook import router as logbook_router
from api.state import get_app_state

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start the logbook runtime with the server and flush it on shutdown."""
    service = None
    if settings.start_service:
        service = get_app_state().service
        service.start(wait_for_fix=settings.wait_for_fix)
        logger.info("Logbook runtime starting")
    try:
        yield
    finally:
        if service is not None:
            service.stop()


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """
    Application factory for the logbook API.

    Returns:
        FastAPI: Configured application instance
    """
    application = FastAPI(
        title="Vessel Noon Logbook API",
        description="Scheduled noon reports, voyage distance ledger and voyage exports.",
        version="1.0.0",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    setup_middleware(application, debug=settings.is_development)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=settings.cors_credentials,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    application.include_router(logbook_router)

    @application.get("/api/health", tags=["System"])
    async def health():
        return {"status": "ok", **get_app_state().health_check()}

    return application


# Create the application
app = create_app()


# ============================================================================
# Run Server
# ============================================================================

if __name__ == "__main__":
    uvicorn.run(
        "api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level,
    )
