"""
Common-Name Resolver

Maps a common name to a scientific binomial:
1. Static table lookup (vocabulary data)
2. Species search whose vernacular names contain an exact match
3. First SPECIES-rank hit that is not obviously a virus/bacterium

Returns None when nothing fits; the caller then searches the original
string as-is.
"""

import logging
from typing import List, Optional

from app.clients.gbif import GBIFClient
from app.core.events import EventSink, default_sink
from app.models.enums import ErrorKind
from app.taxonomy.base import TaxonCandidate
from app.taxonomy.vocabulary import Vocabulary

logger = logging.getLogger(__name__)


class CommonNameResolver:
    """Resolves common names through the static table, then the search service."""

    def __init__(
        self,
        gbif: GBIFClient,
        vocabulary: Vocabulary,
        search_limit: int = 50,
        timeout: Optional[float] = None,
        events: Optional[EventSink] = None,
    ):
        self.gbif = gbif
        self.vocabulary = vocabulary
        self.search_limit = search_limit
        self.timeout = timeout
        self.events = events or default_sink(__name__)

    def lookup_static(self, name: str) -> Optional[str]:
        return self.vocabulary.lookup_common_name(name)

    def _is_organism_name(self, scientific_name: str) -> bool:
        lowered = scientific_name.lower()
        return not any(token in lowered for token in self.vocabulary.non_organism_tokens)

    def match_vernacular(self, name: str, candidates: List[TaxonCandidate]) -> Optional[str]:
        """Scientific name of the first candidate with an exact vernacular match."""
        target = name.strip().lower()
        for candidate in candidates:
            for vernacular in candidate.vernacular_names:
                if vernacular.name.lower() == target and candidate.scientific_name:
                    return candidate.scientific_name
        return None

    def first_species(self, candidates: List[TaxonCandidate]) -> Optional[str]:
        for candidate in candidates:
            if (
                candidate.is_species_rank
                and candidate.scientific_name
                and self._is_organism_name(candidate.scientific_name)
            ):
                return candidate.scientific_name
        return None

    async def resolve(self, name: str) -> Optional[str]:
        """Scientific binomial for a common name, or None."""
        mapped = self.lookup_static(name)
        if mapped:
            self.events.emit("common_name_resolved", common_name=name, scientific_name=mapped, strategy="table")
            return mapped

        result = await self.gbif.search(name, limit=self.search_limit, timeout=self.timeout)
        candidates = result.unwrap_or([])

        matched = self.match_vernacular(name, candidates)
        if matched:
            self.events.emit("common_name_resolved", common_name=name, scientific_name=matched, strategy="vernacular")
            return matched

        fallback = self.first_species(candidates)
        if fallback:
            self.events.emit("common_name_resolved", common_name=name, scientific_name=fallback, strategy="first_species")
            return fallback

        self.events.emit(
            "common_name_unresolved", logging.WARNING,
            common_name=name,
            kind=(result.error or ErrorKind.AMBIGUOUS_INPUT).value,
        )
        return None
