"""
Best-Match Selector

Picks one authoritative record from a search result set. Rules are tried in
order and the first rule with a satisfying candidate wins:

1. KEY_MATCH               key equals the preferred key
2. CANONICAL_ACCEPTED      canonical name matches and status is ACCEPTED
3. CANONICAL               canonical name matches, any status
4. SCIENTIFIC_ACCEPTED     scientific name matches and status is ACCEPTED
5. MOST_COMPLETE           best completeness score among SPECIES-rank hits
6. FIRST                   first element

Name comparisons are case-insensitive exact matches.
"""

from enum import IntEnum
from typing import Optional, Sequence, Tuple

from app.models.enums import TaxonomicStatus
from app.taxonomy.base import SCORED_RANKS, TaxonCandidate, is_present


class MatchRule(IntEnum):
    """Selector rule that produced a match."""
    KEY_MATCH = 1
    CANONICAL_ACCEPTED = 2
    CANONICAL = 3
    SCIENTIFIC_ACCEPTED = 4
    MOST_COMPLETE = 5
    FIRST = 6


def completeness_score(candidate: TaxonCandidate) -> int:
    """
    Taxonomic completeness: 1 base, +5 ACCEPTED, +3 SPECIES rank,
    +1 for each present rank among kingdom..species.
    """
    score = 1
    if candidate.taxonomic_status is TaxonomicStatus.ACCEPTED:
        score += 5
    if candidate.is_species_rank:
        score += 3
    score += sum(1 for rank in SCORED_RANKS if is_present(candidate.rank_value(rank)))
    return score


def _same(a: Optional[str], b: str) -> bool:
    return a is not None and a.lower() == b.lower()


def find_best_match(
    results: Sequence[TaxonCandidate],
    preferred_key: Optional[int],
    canonical_name: str,
) -> Tuple[Optional[TaxonCandidate], Optional[MatchRule]]:
    """Best candidate together with the rule that selected it."""
    if not results:
        return None, None

    if preferred_key is not None:
        for result in results:
            if result.key == preferred_key:
                return result, MatchRule.KEY_MATCH

    accepted = TaxonomicStatus.ACCEPTED
    for result in results:
        if _same(result.canonical_name, canonical_name) and result.taxonomic_status is accepted:
            return result, MatchRule.CANONICAL_ACCEPTED

    for result in results:
        if _same(result.canonical_name, canonical_name):
            return result, MatchRule.CANONICAL

    for result in results:
        if _same(result.scientific_name, canonical_name) and result.taxonomic_status is accepted:
            return result, MatchRule.SCIENTIFIC_ACCEPTED

    species_level = [r for r in results if r.is_species_rank]
    if species_level:
        # max() keeps the first of equal scores, so ties follow result order
        return max(species_level, key=completeness_score), MatchRule.MOST_COMPLETE

    return results[0], MatchRule.FIRST


def select_best_match(
    results: Sequence[TaxonCandidate],
    preferred_key: Optional[int],
    canonical_name: str,
) -> Optional[TaxonCandidate]:
    match, _ = find_best_match(results, preferred_key, canonical_name)
    return match
