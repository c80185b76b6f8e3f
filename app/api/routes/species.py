"""
Species API endpoints.

- Identify: detections (or a raw annotation payload) -> species options
- Details: a common or scientific name -> resolved species records
- Search: plain species search hits
"""

import logging
from fastapi import APIRouter, HTTPException, Depends, Query

from app.core.dependencies import get_species_service
from app.core.exceptions import UpstreamServiceError
from app.models.schemas import (
    IdentifyRequest,
    IdentifyResponse,
    SpeciesDetailsRequest,
    SpeciesDetailsResponse,
    SearchResponse,
    NotFoundResponse,
    UpstreamErrorResponse,
    ErrorResponse,
)
from app.services.species_service import SpeciesResolutionService
from app.taxonomy.base import Detection, UNKNOWN
from app.taxonomy.detection_filter import annotation_error, parse_annotations

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/species", tags=["Species"])


@router.post(
    "/identify",
    response_model=IdentifyResponse,
    responses={
        400: {"model": ErrorResponse, "description": "No detections supplied"},
        502: {"model": UpstreamErrorResponse, "description": "Vision annotation error"},
    },
    summary="Species options from detections",
    description="""
    Filters a ranked detection list down to plausible species queries.

    Accepts either `detections` (already parsed) or `annotations` (a raw
    label/object annotation payload). Generic, anatomical and colour labels
    are dropped; each remaining option carries a representative image when
    one can be found.
    """
)
async def identify_species(
    request: IdentifyRequest,
    service: SpeciesResolutionService = Depends(get_species_service)
) -> IdentifyResponse:
    if request.annotations is not None:
        error = annotation_error(request.annotations)
        if error is not None:
            raise UpstreamServiceError(
                "Vision API error",
                details=error.get("message"),
                status=error.get("code"),
            )
        detections = parse_annotations(request.annotations)
    elif request.detections is not None:
        detections = [
            Detection(description=d.description, score=d.score, source=d.source, mid=d.mid)
            for d in request.detections
        ]
    else:
        raise HTTPException(status_code=400, detail="Either 'detections' or 'annotations' is required")

    logger.info(f"Received identification request ({len(detections)} detections)")
    result = await service.identify(detections)

    return IdentifyResponse(
        success=True,
        detections=[d.to_dict() for d in result.detections],
        species_options=[o.to_dict() for o in result.species_options],
        best_query=result.best_query,
    )


@router.post(
    "/details",
    response_model=SpeciesDetailsResponse,
    responses={
        404: {"model": NotFoundResponse, "description": "No species information found"},
    },
    summary="Resolve a species name",
    description="""
    Resolves a common or scientific name to canonical species records with
    full classification, synonym resolution and a reference image.
    """
)
async def species_details(
    request: SpeciesDetailsRequest,
    service: SpeciesResolutionService = Depends(get_species_service)
) -> SpeciesDetailsResponse:
    logger.info(f"Getting species details for: {request.species_name}")
    results = await service.get_species_details(request.species_name)

    return SpeciesDetailsResponse(
        success=True,
        species_name=request.species_name,
        species_results=[r.to_dict() for r in results],
    )


@router.get(
    "/search",
    response_model=SearchResponse,
    responses={
        502: {"model": UpstreamErrorResponse, "description": "Species search service error"},
    },
    summary="Plain species search",
)
async def search_species(
    query: str = Query(..., min_length=1, max_length=255),
    service: SpeciesResolutionService = Depends(get_species_service)
) -> SearchResponse:
    hits = await service.search(query)
    return SearchResponse(
        success=True,
        results=[
            {
                "scientific_name": hit.scientific_name,
                "taxonomic_status": hit.taxonomic_status.value,
                "rank": hit.rank or UNKNOWN,
                "kingdom": hit.kingdom or UNKNOWN,
                "phylum": hit.phylum or UNKNOWN,
                "class": hit.class_ or UNKNOWN,
                "order": hit.order or UNKNOWN,
                "family": hit.family or UNKNOWN,
                "genus": hit.genus or UNKNOWN,
                "species": hit.species or UNKNOWN,
                "gbif_key": hit.key,
            }
            for hit in hits
        ],
    )
