# API routes module
from app.api.routes.health import router as health_router
from app.api.routes.species import router as species_router

__all__ = ["health_router", "species_router"]
