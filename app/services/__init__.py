# Services module
from app.services.species_service import (
    SpeciesResolutionService,
    IdentificationResult,
    get_species_service,
)

__all__ = [
    "SpeciesResolutionService",
    "IdentificationResult",
    "get_species_service",
]
