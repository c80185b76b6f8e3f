"""
FastAPI dependency injection.

Provides dependency injection for services and components,
enabling easy testing and component swapping.
"""

from app.core.config import Settings, get_settings
from app.services.species_service import SpeciesResolutionService, get_species_service


# Re-export the service getter used by the routes
__all__ = [
    "Settings",
    "get_settings",
    "get_species_service",
    "SpeciesResolutionService",
]
