"""
Domain exceptions.

Upstream failures never surface as exceptions (adapters return FetchResult);
these cover the few conditions that must reach the HTTP layer.
"""

from typing import Any, Optional


class SpeciesResolverError(Exception):
    """Base class for species resolver errors."""


class SpeciesNotFoundError(SpeciesResolverError):
    """No usable species record could be resolved for a query."""

    def __init__(self, species_name: str):
        self.species_name = species_name
        super().__init__(f"No species information found for '{species_name}'")


class UpstreamServiceError(SpeciesResolverError):
    """An upstream collaborator reported an error the caller must see."""

    def __init__(self, error: str, details: Any = None, status: Optional[int] = None):
        self.error = error
        self.details = details
        self.status = status
        super().__init__(error)
