"""
Species Resolver API

FastAPI application that resolves noisy species names (vision labels,
common names, synonyms) into canonical taxa with a full classification
hierarchy and a reference image.

This is the main entry point for the application.

Usage:
    uvicorn app.main:app --reload
    uvicorn app.main:app --host 0.0.0.0 --port 8000

Production:
    gunicorn app.main:app -k uvicorn.workers.UvicornWorker -w 4
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.exceptions import SpeciesNotFoundError, UpstreamServiceError
from app.api.routes import health_router, species_router
from app.api.routes.health import set_startup_time
from app.services.species_service import shutdown_species_service

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup:
    - Record startup time

    Runs on shutdown:
    - Close the shared upstream HTTP client
    """
    logger.info("Starting Species Resolver API...")
    set_startup_time()
    logger.info("Application startup complete")

    yield

    logger.info("Shutting down Species Resolver API...")
    await shutdown_species_service()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## Species Resolver API

Reconciles GBIF, iNaturalist, Wikipedia and Flickr data into one canonical
species record.

### API Endpoints

- `POST /api/v1/species/identify` - Species options from vision detections
- `POST /api/v1/species/details` - Resolve a common or scientific name
- `GET /api/v1/species/search` - Plain species search
- `GET /api/v1/health` - Health check
- `GET /api/v1/health/ready` - Readiness check
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SpeciesNotFoundError)
async def species_not_found_handler(request: Request, exc: SpeciesNotFoundError):
    logger.info(f"No species information found for {exc.species_name!r}")
    return JSONResponse(
        status_code=404,
        content={"success": False, "message": "No species information found"}
    )


@app.exception_handler(UpstreamServiceError)
async def upstream_error_handler(request: Request, exc: UpstreamServiceError):
    logger.warning(f"Upstream error: {exc.error} (status={exc.status})")
    return JSONResponse(
        status_code=502,
        content={"error": exc.error, "details": exc.details, "status": exc.status}
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again.",
            "details": str(exc) if settings.debug else None
        }
    )


# Include routers
app.include_router(health_router, prefix=settings.api_prefix)
app.include_router(species_router, prefix=settings.api_prefix)


# API info endpoint
@app.get("/", tags=["Root"])
async def api_info():
    """API information endpoint."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "documentation": "/docs",
        "health_check": f"{settings.api_prefix}/health",
        "species_endpoint": f"{settings.api_prefix}/species"
    }


# Entry point for running with Python
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers
    )
