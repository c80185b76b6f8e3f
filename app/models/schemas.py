"""
Pydantic schemas for API request/response validation.

These schemas define the contract between the API and clients,
ensuring type safety and automatic documentation.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, Optional

from app.models.enums import DetectionSource, OptionSource, TaxonomicStatus


# === Detection Schemas ===

class DetectionSchema(BaseModel):
    """Single labeled candidate from the vision collaborator."""
    description: str = Field(..., min_length=1, description="Label or object name")
    score: float = Field(..., ge=0.0, le=1.0, description="Confidence score (0-1)")
    source: DetectionSource = Field(
        default=DetectionSource.LABEL,
        description="Whether the candidate came from label or object detection"
    )
    mid: str = Field(default="", description="Provenance id (knowledge graph mid)")


class SpeciesOptionSchema(BaseModel):
    """Species query offered to the caller for disambiguation."""
    name: str = Field(..., description="Detection text used as a species query")
    score: float = Field(..., description="Confidence of the underlying detection")
    source: OptionSource = Field(..., description="species_detection or general_detection")
    image: Optional[str] = Field(default=None, description="Representative image URL")


# === Request Schemas ===

class IdentifyRequest(BaseModel):
    """
    Request schema for species identification.

    Attributes:
        detections: Ranked detections already produced by the vision collaborator
        annotations: Raw label/object annotation payload, parsed server-side
    """
    detections: Optional[list[DetectionSchema]] = Field(
        default=None,
        description="Ranked detection list"
    )
    annotations: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Raw annotation payload with labelAnnotations/localizedObjectAnnotations"
    )


class SpeciesDetailsRequest(BaseModel):
    """Request schema for species details lookup."""
    species_name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Common or scientific name to resolve"
    )

    @field_validator("species_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("species_name must not be blank")
        return v


# === Taxonomy Schemas ===

class ResolvedSpeciesSchema(BaseModel):
    """
    Canonical species record.

    Rank fields are lower-case, or "unknown" when no source supplied them.
    """
    scientific_name: str = Field(..., description="Scientific name with authorship")
    taxonomic_status: TaxonomicStatus = Field(..., description="GBIF taxonomic status")
    rank: str = Field(default="unknown", description="Taxon rank as reported by GBIF")
    domain: str = Field(default="eukaryota")
    kingdom: str = Field(default="unknown")
    phylum: str = Field(default="unknown")
    class_: str = Field(default="unknown", alias="class")
    order: str = Field(default="unknown")
    family: str = Field(default="unknown")
    genus: str = Field(default="unknown")
    species: str = Field(default="unknown")
    gbif_key: Optional[int] = Field(default=None, description="GBIF usage key")
    preferred_common_name: Optional[str] = Field(default=None)
    reference_image: Optional[str] = Field(default=None, description="Representative image URL")
    image_source: Optional[str] = Field(default=None, description="Provider that supplied the image")
    synonym_of: Optional[str] = Field(
        default=None,
        description="Original scientific name when a synonym was replaced by its accepted taxon"
    )

    class Config:
        populate_by_name = True


class SearchResultSchema(BaseModel):
    """Raw search hit from the species search service."""
    scientific_name: str
    taxonomic_status: str
    rank: str = "unknown"
    kingdom: str = "unknown"
    phylum: str = "unknown"
    class_: str = Field(default="unknown", alias="class")
    order: str = "unknown"
    family: str = "unknown"
    genus: str = "unknown"
    species: str = "unknown"
    gbif_key: Optional[int] = None

    class Config:
        populate_by_name = True


# === Response Schemas ===

class IdentifyResponse(BaseModel):
    """Detections plus the species options derived from them."""
    success: bool = Field(default=True)
    detections: list[DetectionSchema] = Field(default_factory=list)
    species_options: list[SpeciesOptionSchema] = Field(default_factory=list)
    best_query: Optional[str] = Field(
        default=None,
        description="Single most promising query among the detections"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "detections": [
                    {"description": "Magpie", "score": 0.93, "source": "label_detection", "mid": "/m/01dxs"},
                    {"description": "Bird", "score": 0.97, "source": "label_detection", "mid": "/m/015p6"}
                ],
                "species_options": [
                    {
                        "name": "Magpie",
                        "score": 0.93,
                        "source": "species_detection",
                        "image": "https://inaturalist-open-data.s3.amazonaws.com/photos/1/large.jpg"
                    }
                ],
                "best_query": "Magpie"
            }
        }


class SpeciesDetailsResponse(BaseModel):
    """Resolved species records for a name."""
    success: bool = Field(default=True)
    species_name: str = Field(..., description="Name as supplied by the caller")
    species_results: list[ResolvedSpeciesSchema] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "success": True,
                "species_name": "American Robin",
                "species_results": [
                    {
                        "scientific_name": "Turdus migratorius Linnaeus, 1766",
                        "taxonomic_status": "ACCEPTED",
                        "rank": "SPECIES",
                        "domain": "eukaryota",
                        "kingdom": "animalia",
                        "phylum": "chordata",
                        "class": "aves",
                        "order": "passeriformes",
                        "family": "turdidae",
                        "genus": "turdus",
                        "species": "turdus migratorius",
                        "gbif_key": 9510513,
                        "preferred_common_name": "American Robin",
                        "reference_image": "https://api.gbif.org/v1/image/robin.jpg",
                        "image_source": "gbif",
                        "synonym_of": None
                    }
                ]
            }
        }


class SearchResponse(BaseModel):
    """Plain species search results."""
    success: bool = Field(default=True)
    results: list[SearchResultSchema] = Field(default_factory=list)


# === Error Schemas ===

class NotFoundResponse(BaseModel):
    """No species could be resolved."""
    success: bool = Field(default=False)
    message: str = Field(default="No species information found")


class UpstreamErrorResponse(BaseModel):
    """An upstream collaborator failed."""
    error: str = Field(..., description="Error summary")
    details: Optional[Any] = Field(default=None, description="Upstream error details")
    status: Optional[int] = Field(default=None, description="Upstream status code")


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[dict] = Field(default=None, description="Additional error details")
