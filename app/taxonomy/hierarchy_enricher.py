"""
Hierarchy Enricher

Fills missing classification ranks (kingdom..genus) on resolved records.

Sources, in order, for each missing rank:
1. Sibling results for the same canonical name from the same search
2. The detailed record fetched by key
3. A SPECIES-ranked search for the full scientific name, then for its
   genus token, accepting hits for the same species or the same genus
4. A GENUS-ranked search for the genus token, accepting an exact name match
5. Known-lineage rules (class Aves implies phylum Chordata, kingdom Animalia)

Every function here returns a new value; nothing is modified in place.
Each lookup is best-effort; a rank nobody can supply stays "unknown".

Usage:
    enricher = HierarchyEnricher(gbif, vocabulary.lineage_rules)
    species = await enricher.enrich(species)
"""

import logging
from dataclasses import replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from app.clients.gbif import GBIFClient
from app.core.events import EventSink, default_sink
from app.models.enums import TaxonRank
from app.taxonomy.base import (
    DEFAULT_DOMAIN,
    HIERARCHY_RANKS,
    ResolvedSpecies,
    TaxonCandidate,
    is_present,
)
from app.taxonomy.vocabulary import LineageRule

logger = logging.getLogger(__name__)

RankValues = Dict[str, Optional[str]]


def apply_lineage_heuristics(
    ranks: Mapping[str, Optional[str]],
    rules: Sequence[LineageRule],
) -> RankValues:
    """Copy of `ranks` with rule-implied values filled where unset."""
    result: RankValues = dict(ranks)
    for rule in rules:
        value = result.get(rule.rank)
        if not is_present(value) or value.strip().lower() != rule.value:
            continue
        for implied_rank, implied_value in rule.implies:
            if not is_present(result.get(implied_rank)):
                result[implied_rank] = implied_value
    return result


def enrich_from_siblings(
    target: TaxonCandidate,
    siblings: Sequence[TaxonCandidate],
    rules: Sequence[LineageRule] = (),
) -> TaxonCandidate:
    """
    Fill the target's missing ranks from other results with the same
    canonical name and collect their vernacular names.
    """
    name = target.display_name.lower()
    ranks: RankValues = {rank: target.rank_value(rank) for rank in HIERARCHY_RANKS}
    vernaculars = list(target.vernacular_names)

    for sibling in siblings:
        if sibling is target or sibling.display_name.lower() != name:
            continue
        for rank in HIERARCHY_RANKS:
            value = sibling.rank_value(rank)
            if not is_present(ranks[rank]) and is_present(value):
                ranks[rank] = value
        for vernacular in sibling.vernacular_names:
            if vernacular not in vernaculars:
                vernaculars.append(vernacular)

    ranks = apply_lineage_heuristics(ranks, rules)
    return replace(target.with_ranks(ranks), vernacular_names=tuple(vernaculars))


def fill_missing_ranks(
    species: ResolvedSpecies,
    values: Mapping[str, Optional[str]],
) -> ResolvedSpecies:
    """Copy of `species` with only its unknown ranks taken from `values`."""
    updates = {
        rank: value
        for rank, value in values.items()
        if is_present(value) and not is_present(species.rank_value(rank))
    }
    if not updates:
        return species
    return species.with_ranks(updates)


class HierarchyEnricher:
    """Fills missing ranks on a ResolvedSpecies through targeted searches."""

    def __init__(
        self,
        gbif: GBIFClient,
        rules: Sequence[LineageRule] = (),
        timeout: Optional[float] = None,
        search_limit: int = 10,
        genus_search_limit: int = 5,
        events: Optional[EventSink] = None,
    ):
        self.gbif = gbif
        self.rules = tuple(rules)
        self.timeout = timeout
        self.search_limit = search_limit
        self.genus_search_limit = genus_search_limit
        self.events = events or default_sink(__name__)

    async def enrich(self, species: ResolvedSpecies) -> ResolvedSpecies:
        missing = species.missing_ranks(("domain",) + HIERARCHY_RANKS)
        if not missing or species.gbif_key is None:
            return self._apply_rules(species)

        values: RankValues = {}
        scientific_name = species.scientific_name

        detail = await self.gbif.get_species(species.gbif_key, timeout=self.timeout)
        if detail.ok:
            record = detail.value
            values["domain"] = record.domain or DEFAULT_DOMAIN
            for rank in HIERARCHY_RANKS:
                values[rank] = record.rank_value(rank)
            scientific_name = record.scientific_name or scientific_name
        else:
            self.events.emit(
                "hierarchy_detail_unavailable", logging.DEBUG,
                key=species.gbif_key, kind=detail.error.value,
            )

        memo: Dict[Tuple[str, TaxonRank, int], List[TaxonCandidate]] = {}
        for rank in HIERARCHY_RANKS:
            if rank not in missing or is_present(values.get(rank)):
                continue
            found = await self._search_for_rank(rank, scientific_name, memo)
            if found:
                values[rank] = found

        enriched = self._apply_rules(fill_missing_ranks(species, values))
        filled = [r for r in missing if not is_present(species.rank_value(r)) and is_present(enriched.rank_value(r))]
        self.events.emit(
            "hierarchy_enriched",
            name=species.scientific_name,
            filled=",".join(filled) or "-",
            searches=len(memo),
        )
        return enriched

    def _apply_rules(self, species: ResolvedSpecies) -> ResolvedSpecies:
        current = {rank: species.rank_value(rank) for rank in HIERARCHY_RANKS}
        return fill_missing_ranks(species, apply_lineage_heuristics(current, self.rules))

    async def _search(
        self,
        query: str,
        rank: TaxonRank,
        limit: int,
        memo: Dict[Tuple[str, TaxonRank, int], List[TaxonCandidate]],
    ) -> List[TaxonCandidate]:
        memo_key = (query, rank, limit)
        if memo_key not in memo:
            result = await self.gbif.search(query, limit=limit, rank=rank, timeout=self.timeout)
            memo[memo_key] = result.unwrap_or([])
        return memo[memo_key]

    async def _search_for_rank(
        self,
        target_rank: str,
        scientific_name: str,
        memo: Dict[Tuple[str, TaxonRank, int], List[TaxonCandidate]],
    ) -> Optional[str]:
        words = scientific_name.split()
        if not words:
            return None
        search_name = scientific_name.lower()
        genus = words[0]

        queries = [scientific_name]
        if genus != scientific_name:
            queries.append(genus)

        for query in queries:
            for result in await self._search(query, TaxonRank.SPECIES, self.search_limit, memo):
                value = result.rank_value(target_rank)
                if not is_present(value) or not result.scientific_name:
                    continue
                result_name = result.scientific_name.lower()
                if result_name == search_name or result_name.split()[0] == genus.lower():
                    return value

        for result in await self._search(genus, TaxonRank.GENUS, self.genus_search_limit, memo):
            value = result.rank_value(target_rank)
            if not is_present(value):
                continue
            if any(
                name is not None and name.lower() == genus.lower()
                for name in (result.canonical_name, result.scientific_name)
            ):
                return value
        return None
