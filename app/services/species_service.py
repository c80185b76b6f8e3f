"""
Species Resolution Orchestration Service

Coordinates the species identity pipeline:
1. Detection filtering (vision labels -> species options)
2. Common-name / scientific-name disambiguation
3. Two-step canonical search (initial search, canonical-name search)
4. Best-match selection
5. Sibling enrichment and synonym resolution
6. Hierarchy enrichment
7. Deduplication
8. Batched reference image sourcing

    query ──► NameClassifier ──► CommonNameResolver ──► GBIF search (x2)
                                                             │
                  ┌──────────────────────────────────────────┘
                  ▼
          BestMatchSelector ──► SynonymResolver ──► HierarchyEnricher
                                                             │
                  ┌──────────────────────────────────────────┘
                  ▼
            Deduplicator ──► ImageSourcer ──► [ResolvedSpecies]

Design Principles:
- Every stage degrades to partial data instead of failing the request
- Upstream adapters return FetchResult values; only a total absence of
  results surfaces (as SpeciesNotFoundError)
- Stages are constructed here and can be replaced individually in tests
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, TypeVar

import httpx

from app.clients.base import TTLCache
from app.clients.flickr import FlickrFeedClient
from app.clients.gbif import GBIFClient
from app.clients.inaturalist import INaturalistClient
from app.clients.wikipedia import WikipediaClient
from app.core.config import Settings, get_settings
from app.core.events import EventSink, default_sink
from app.core.exceptions import SpeciesNotFoundError, UpstreamServiceError
from app.models.enums import TaxonomicStatus, TaxonRank
from app.taxonomy.base import (
    DEFAULT_DOMAIN,
    UNKNOWN,
    Detection,
    ResolvedSpecies,
    SpeciesOption,
    TaxonCandidate,
    VernacularName,
    lower_or_unknown,
)
from app.taxonomy.common_names import CommonNameResolver
from app.taxonomy.deduplicator import deduplicate
from app.taxonomy.detection_filter import DetectionFilter
from app.taxonomy.hierarchy_enricher import HierarchyEnricher, enrich_from_siblings
from app.taxonomy.image_sourcer import (
    FlickrProvider,
    GBIFMediaProvider,
    ImageSourcer,
    INaturalistProvider,
    WikipediaProvider,
)
from app.taxonomy.match_selector import find_best_match
from app.taxonomy.name_classifier import NameClassifier
from app.taxonomy.synonym_resolver import SynonymResolver
from app.taxonomy.vocabulary import Vocabulary, get_vocabulary

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def preferred_common_name(*sources: Sequence[VernacularName]) -> Optional[str]:
    """
    English ("eng") vernacular name from the first source that has one,
    otherwise the first name of that source.
    """
    for names in sources:
        if not names:
            continue
        for name in names:
            if name.language == "eng":
                return name.name
        return names[0].name
    return None


@dataclass
class IdentificationResult:
    """Outcome of the identify operation."""
    detections: List[Detection]
    species_options: List[SpeciesOption]
    best_query: Optional[str] = None


class SpeciesResolutionService:
    """
    Main orchestration service for species resolution.

    Usage:
        service = SpeciesResolutionService()
        results = await service.get_species_details("American Robin")
        await service.aclose()
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        vocabulary: Optional[Vocabulary] = None,
        events: Optional[EventSink] = None,
    ):
        self.settings = settings or get_settings()
        s = self.settings

        self._owns_http_client = http_client is None
        self.http = http_client or httpx.AsyncClient(
            headers={"User-Agent": s.user_agent},
            follow_redirects=True,
        )
        self.vocabulary = vocabulary or get_vocabulary(s.vocabulary_path)
        self.events = events or default_sink(__name__)

        cache = None
        if s.search_cache_ttl_seconds > 0:
            cache = TTLCache(s.search_cache_ttl_seconds, s.search_cache_max_entries)

        self.gbif = GBIFClient(
            self.http, s.gbif_base_url, timeout=s.search_timeout, cache=cache, events=self.events
        )
        self.detection_filter = DetectionFilter(
            self.vocabulary, max_options=s.max_species_options, events=self.events
        )
        self.classifier = NameClassifier(self.vocabulary)
        self.common_names = CommonNameResolver(
            self.gbif,
            self.vocabulary,
            search_limit=s.common_name_search_limit,
            timeout=s.search_timeout,
            events=self.events,
        )
        self.synonyms = SynonymResolver(self.gbif, timeout=s.detail_timeout, events=self.events)
        self.enricher = HierarchyEnricher(
            self.gbif,
            self.vocabulary.lineage_rules,
            timeout=s.enrichment_timeout,
            search_limit=s.enrichment_search_limit,
            genus_search_limit=s.genus_search_limit,
            events=self.events,
        )
        self.images = ImageSourcer(
            self.gbif,
            providers=[
                GBIFMediaProvider(self.gbif, limit=s.media_limit, timeout=s.image_timeout),
                INaturalistProvider(
                    INaturalistClient(
                        self.http, s.inaturalist_base_url, timeout=s.image_timeout, events=self.events
                    ),
                    photo_limit=s.inaturalist_photo_limit,
                ),
                WikipediaProvider(
                    WikipediaClient(
                        self.http, s.wikipedia_base_url, timeout=s.image_timeout, events=self.events
                    )
                ),
                FlickrProvider(
                    FlickrFeedClient(
                        self.http, s.flickr_feed_url, timeout=s.image_timeout, events=self.events
                    )
                ),
            ],
            name_lookup_timeout=s.name_lookup_timeout,
            max_concurrency=s.max_concurrency,
            events=self.events,
        )

    async def _bounded_map(
        self,
        func: Callable[[T], Awaitable[R]],
        items: Iterable[T],
    ) -> List[R]:
        """Run `func` over items with at most max_concurrency in flight, keeping order."""
        semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrency))

        async def run(item: T) -> R:
            async with semaphore:
                return await func(item)

        tasks = [asyncio.ensure_future(run(item)) for item in items]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # Cancel the rest of the batch before propagating
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    # ------------------------------------------------------------------
    # Identify
    # ------------------------------------------------------------------

    async def identify(self, detections: Sequence[Detection]) -> IdentificationResult:
        """Filter detections into species options and attach option images."""
        options = self.detection_filter.filter(detections)
        options = await self.attach_images(options)
        best_query = self.detection_filter.best_query(detections)

        self.events.emit(
            "identify_completed",
            detections=len(detections),
            options=len(options),
            best_query=best_query or "-",
        )
        return IdentificationResult(
            detections=list(detections),
            species_options=options,
            best_query=best_query,
        )

    async def _option_image(self, option: SpeciesOption) -> SpeciesOption:
        try:
            lookup = await self.gbif.search(option.name, limit=1, timeout=self.settings.image_timeout)
            hits = lookup.unwrap_or([])
            if not hits or hits[0].key is None:
                return option.with_image(None)
            image = await self.images.find_image(
                hits[0].key,
                scientific_name=hits[0].scientific_name or None,
                search_term=option.name,
            )
            return option.with_image(image.url)
        except Exception as e:
            self.events.emit(
                "option_image_failed", logging.WARNING,
                name=option.name, error=str(e),
            )
            return option.with_image(None)

    async def attach_images(self, options: Sequence[SpeciesOption]) -> List[SpeciesOption]:
        """Copy of the options with `image` set where a picture was found."""
        if not options:
            return []
        return await self._bounded_map(self._option_image, options)

    # ------------------------------------------------------------------
    # Species details
    # ------------------------------------------------------------------

    async def get_species_details(self, species_name: str) -> List[ResolvedSpecies]:
        """Resolved records for a name; raises SpeciesNotFoundError when empty."""
        results = await self.resolve(species_name)
        if not results:
            self.events.emit("species_not_found", logging.WARNING, species_name=species_name)
            raise SpeciesNotFoundError(species_name)
        return results

    async def resolve(self, species_name: str) -> List[ResolvedSpecies]:
        """
        Canonical-name lookup, falling back once to a simple search when the
        lookup fails unexpectedly.
        """
        try:
            return await self._canonical_lookup(species_name, resolve_common_name=True)
        except Exception as e:
            logger.exception(f"Canonical lookup failed for {species_name!r}")
            self.events.emit(
                "canonical_lookup_failed", logging.ERROR,
                species_name=species_name, error=type(e).__name__,
            )
            return await self.simple_search(species_name)

    async def _canonical_lookup(
        self,
        species_name: str,
        resolve_common_name: bool,
    ) -> List[ResolvedSpecies]:
        if resolve_common_name and self.classifier.is_common_name(species_name):
            scientific_name = await self.common_names.resolve(species_name)
            if scientific_name:
                return await self._canonical_lookup(scientific_name, resolve_common_name=False)

        limit = self.settings.canonical_search_limit
        initial = await self.gbif.search(species_name, limit=limit, rank=TaxonRank.SPECIES)
        if not initial.ok:
            self.events.emit(
                "initial_search_failed", logging.WARNING,
                query=species_name, kind=initial.error.value,
            )
            return []
        if not initial.value:
            self.events.emit("initial_search_empty", logging.INFO, query=species_name)
            return []

        first = initial.value[0]
        canonical_name = first.canonical_name or first.scientific_name
        if not canonical_name:
            return await self.build_results(initial.value)

        canonical = await self.gbif.search(canonical_name, limit=limit, rank=TaxonRank.SPECIES)
        if not canonical.ok or not canonical.value:
            self.events.emit(
                "canonical_search_unusable", logging.INFO,
                canonical_name=canonical_name,
                kind=canonical.error.value if canonical.error else "empty",
            )
            return await self.build_results(initial.value)

        best, rule = find_best_match(canonical.value, first.key, canonical_name)
        if best is None:
            return await self.build_results(initial.value)

        self.events.emit(
            "best_match_selected",
            query=species_name,
            canonical_name=canonical_name,
            match=best.scientific_name,
            key=best.key,
            rule=rule.name,
        )
        return await self.build_results([best], siblings=canonical.value, enrich_hierarchy=True)

    async def simple_search(self, species_name: str) -> List[ResolvedSpecies]:
        """Single search without rank filter or canonical-name step."""
        result = await self.gbif.search(species_name, limit=self.settings.fallback_search_limit)
        if not result.ok:
            return []
        return await self.build_results(result.value)

    # ------------------------------------------------------------------
    # Result building
    # ------------------------------------------------------------------

    async def build_results(
        self,
        candidates: Sequence[TaxonCandidate],
        siblings: Optional[Sequence[TaxonCandidate]] = None,
        enrich_hierarchy: bool = False,
    ) -> List[ResolvedSpecies]:
        """
        Turn SPECIES-rank candidates into deduplicated ResolvedSpecies with
        reference images.
        """
        pool = list(siblings) if siblings is not None else list(candidates)
        species_level = [c for c in candidates if c.scientific_name and c.is_species_rank]
        if not species_level:
            return []

        async def resolve_one(candidate: TaxonCandidate) -> ResolvedSpecies:
            enriched = enrich_from_siblings(candidate, pool, self.vocabulary.lineage_rules)
            accepted = await self.synonyms.resolve(candidate)
            record = self.to_resolved_species(enriched, accepted)
            if record.preferred_common_name is None and record.gbif_key is not None:
                record = await self._lookup_common_name(record)
            return record

        records = await self._bounded_map(resolve_one, species_level)

        if enrich_hierarchy:
            records = [await self.enricher.enrich(record) for record in records]

        before = len(records)
        records = deduplicate(records)
        self.events.emit("species_deduplicated", before=before, after=len(records))

        return await self.attach_reference_images(records)

    def to_resolved_species(
        self,
        candidate: TaxonCandidate,
        accepted: Optional[TaxonCandidate] = None,
    ) -> ResolvedSpecies:
        """
        Build the output record. When a synonym was resolved, fields come from
        the accepted record and fall back to the synonym's own values.
        """
        source = accepted or candidate

        def pick(rank: str) -> str:
            return lower_or_unknown(source.rank_value(rank) or candidate.rank_value(rank))

        synonym_of = None
        if accepted is not None and candidate.taxonomic_status is not TaxonomicStatus.ACCEPTED:
            synonym_of = candidate.scientific_name

        status = source.taxonomic_status
        if status is TaxonomicStatus.UNKNOWN:
            status = candidate.taxonomic_status

        return ResolvedSpecies(
            scientific_name=source.scientific_name or candidate.scientific_name,
            taxonomic_status=status,
            rank=source.rank or candidate.rank or UNKNOWN,
            domain=lower_or_unknown(source.domain or candidate.domain or DEFAULT_DOMAIN),
            kingdom=pick("kingdom"),
            phylum=pick("phylum"),
            class_=pick("class"),
            order=pick("order"),
            family=pick("family"),
            genus=pick("genus"),
            species=pick("species"),
            gbif_key=source.key if source.key is not None else candidate.key,
            preferred_common_name=preferred_common_name(
                source.vernacular_names, candidate.vernacular_names
            ),
            synonym_of=synonym_of,
        )

    async def _lookup_common_name(self, record: ResolvedSpecies) -> ResolvedSpecies:
        names = await self.gbif.get_vernacular_names(
            record.gbif_key, timeout=self.settings.name_lookup_timeout
        )
        common_name = preferred_common_name(names.unwrap_or([]))
        if common_name is None:
            return record
        return replace(record, preferred_common_name=common_name)

    async def attach_reference_images(self, records: Sequence[ResolvedSpecies]) -> List[ResolvedSpecies]:
        """One batched image pass over the distinct keys of the records."""
        keys = [r.gbif_key for r in records if r.gbif_key is not None]
        if not keys:
            return list(records)

        names = {}
        for record in records:
            if record.gbif_key is not None:
                names.setdefault(record.gbif_key, record.scientific_name)
        images = await self.images.find_images(keys, names)

        updated = []
        for record in records:
            image = images.get(record.gbif_key) if record.gbif_key is not None else None
            if image is not None and image.found:
                record = record.with_image(image.url, image.source)
            updated.append(record)
        return updated

    # ------------------------------------------------------------------
    # Plain search
    # ------------------------------------------------------------------

    async def search(self, query: str, limit: int = 10) -> List[TaxonCandidate]:
        """
        Raw search hits that carry a scientific name and a taxonomic status.

        Raises UpstreamServiceError when the search service fails.
        """
        result = await self.gbif.search(query, limit=limit)
        if not result.ok:
            raise UpstreamServiceError(
                "GBIF API error",
                details=result.details if result.details is not None else "No response details",
                status=result.status_code,
            )
        return [
            c for c in result.value
            if c.scientific_name and c.taxonomic_status is not TaxonomicStatus.UNKNOWN
        ]

    async def is_ready(self) -> bool:
        return await self.gbif.is_available()

    async def aclose(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_http_client:
            await self.http.aclose()

    def describe(self) -> dict:
        """Static facts about the loaded vocabulary, for health output."""
        return {
            "common_names": len(self.vocabulary.common_names),
            "exclusion_terms": len(self.vocabulary.exclusion_terms),
            "lineage_rules": len(self.vocabulary.lineage_rules),
            "vocabulary_fallback": self.vocabulary.is_fallback,
        }


# Singleton instance for dependency injection
_species_service: Optional[SpeciesResolutionService] = None


def get_species_service() -> SpeciesResolutionService:
    """Get or create the species resolution service singleton."""
    global _species_service
    if _species_service is None:
        _species_service = SpeciesResolutionService()
    return _species_service


async def shutdown_species_service() -> None:
    """Close and drop the singleton (application shutdown)."""
    global _species_service
    if _species_service is not None:
        await _species_service.aclose()
        _species_service = None
