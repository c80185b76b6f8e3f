# Data models module
from app.models.schemas import (
    DetectionSchema,
    SpeciesOptionSchema,
    IdentifyRequest,
    IdentifyResponse,
    SpeciesDetailsRequest,
    SpeciesDetailsResponse,
    ResolvedSpeciesSchema,
    SearchResponse,
)
from app.models.enums import TaxonomicStatus, ErrorKind

__all__ = [
    "DetectionSchema",
    "SpeciesOptionSchema",
    "IdentifyRequest",
    "IdentifyResponse",
    "SpeciesDetailsRequest",
    "SpeciesDetailsResponse",
    "ResolvedSpeciesSchema",
    "SearchResponse",
    "TaxonomicStatus",
    "ErrorKind",
]
