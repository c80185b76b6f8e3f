"""
Health check and system status endpoints.

Provides endpoints for:
- Basic health check
- Readiness check (species search service reachable, vocabulary loaded)
- Liveness probe
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import Optional
import time

from app.core.config import get_settings
from app.core.dependencies import get_species_service
from app.services.species_service import SpeciesResolutionService

router = APIRouter(prefix="/health", tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: float
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """
    Readiness with per-component status.

    status is "degraded" when the bundled vocabulary could not be read and
    the built-in fallback is in use.
    """
    status: str
    timestamp: float
    version: str
    components: dict[str, dict]
    uptime_seconds: Optional[float] = None


_started_at: Optional[float] = None


def set_startup_time() -> None:
    """Record process start (called from the application lifespan)."""
    global _started_at
    _started_at = time.time()


def uptime_seconds() -> Optional[float]:
    if _started_at is None:
        return None
    return time.time() - _started_at


@router.get("", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Service is up; no upstream calls are made."""
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        timestamp=time.time(),
        version=settings.app_version,
        service=settings.app_name,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(
    service: SpeciesResolutionService = Depends(get_species_service)
) -> ReadinessResponse:
    """
    Readiness check.

    Verifies:
    - The species search service answers a probe query (503 otherwise)
    - The vocabulary data loaded (a fallback vocabulary is reported, not fatal)
    """
    search_ready = await service.is_ready()
    if not search_ready:
        raise HTTPException(status_code=503, detail="Species search service unavailable")

    vocabulary = service.describe()
    components = {
        "species_search": {
            "status": "ready",
            "base_url": service.settings.gbif_base_url,
        },
        "vocabulary": {
            "status": "fallback" if vocabulary["vocabulary_fallback"] else "ready",
            **vocabulary,
        },
    }

    return ReadinessResponse(
        status="degraded" if vocabulary["vocabulary_fallback"] else "ready",
        timestamp=time.time(),
        version=get_settings().app_version,
        components=components,
        uptime_seconds=uptime_seconds(),
    )


@router.get("/live")
async def liveness_check() -> dict:
    """Liveness probe; 200 while the process is running."""
    return {"status": "alive", "uptime_seconds": uptime_seconds()}
