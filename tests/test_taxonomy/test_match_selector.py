"""
Tests for best-match selection and the completeness score.
"""

import pytest

from app.models.enums import TaxonomicStatus
from app.taxonomy.base import TaxonCandidate
from app.taxonomy.match_selector import (
    MatchRule,
    completeness_score,
    find_best_match,
    select_best_match,
)


def candidate(key, scientific_name, canonical_name=None, status="ACCEPTED", rank="SPECIES", **ranks):
    return TaxonCandidate(
        key=key,
        scientific_name=scientific_name,
        canonical_name=canonical_name,
        taxonomic_status=TaxonomicStatus.from_value(status),
        rank=rank,
        **ranks,
    )


class TestFindBestMatch:
    """Test suite for the ordered selection rules."""

    # === Rule Precedence Tests ===

    def test_key_match_beats_everything(self):
        """The preferred key wins even over an accepted canonical match."""
        results = [
            candidate(1, "Pica pica (Linnaeus, 1758)", "Pica pica"),
            candidate(2, "Pica pica Linnaeus", "Pica pica", status="SYNONYM"),
        ]

        match, rule = find_best_match(results, preferred_key=2, canonical_name="Pica pica")

        assert match.key == 2
        assert rule is MatchRule.KEY_MATCH

    def test_canonical_accepted_beats_canonical(self):
        """An accepted canonical match wins over an earlier synonym one."""
        results = [
            candidate(1, "Pica pica Linnaeus", "Pica pica", status="SYNONYM"),
            candidate(2, "Pica pica (Linnaeus, 1758)", "Pica pica"),
        ]

        match, rule = find_best_match(results, preferred_key=99, canonical_name="pica PICA")

        assert match.key == 2
        assert rule is MatchRule.CANONICAL_ACCEPTED

    def test_canonical_any_status(self):
        results = [
            candidate(1, "Corvus corax", "Corvus corax"),
            candidate(2, "Pica pica Linnaeus", "Pica pica", status="DOUBTFUL"),
        ]

        match, rule = find_best_match(results, None, "Pica pica")

        assert match.key == 2
        assert rule is MatchRule.CANONICAL

    def test_scientific_name_accepted(self):
        """Without canonical names, an exact scientific name match is used."""
        results = [
            candidate(1, "Corvus corax"),
            candidate(2, "Pica pica"),
        ]

        match, rule = find_best_match(results, None, "Pica pica")

        assert match.key == 2
        assert rule is MatchRule.SCIENTIFIC_ACCEPTED

    def test_most_complete_species(self):
        """With no name match, the most complete SPECIES-rank record wins."""
        results = [
            candidate(1, "Corvidae", rank="FAMILY", kingdom="Animalia", phylum="Chordata",
                      class_="Aves", order="Passeriformes", family="Corvidae"),
            candidate(2, "Corvus sp.", status="DOUBTFUL"),
            candidate(3, "Corvus corone", kingdom="Animalia", genus="Corvus"),
        ]

        match, rule = find_best_match(results, None, "Crow")

        assert match.key == 3
        assert rule is MatchRule.MOST_COMPLETE

    def test_most_complete_tie_keeps_first(self):
        results = [candidate(1, "Corvus corone"), candidate(2, "Corvus cornix")]

        match, _ = find_best_match(results, None, "Crow")

        assert match.key == 1

    def test_first_when_no_species_rank(self):
        results = [candidate(1, "Corvidae", rank="FAMILY"), candidate(2, "Corvus", rank="GENUS")]

        match, rule = find_best_match(results, None, "Crow")

        assert match.key == 1
        assert rule is MatchRule.FIRST

    def test_empty_results(self):
        assert find_best_match([], 1, "Pica pica") == (None, None)
        assert select_best_match([], 1, "Pica pica") is None


class TestCompletenessScore:
    """Test suite for completeness_score."""

    def test_score_components(self):
        """1 base + 5 accepted + 3 species + 1 per present rank."""
        bare = candidate(1, "X y", status="SYNONYM", rank="GENUS")
        full = candidate(
            2, "Pica pica",
            kingdom="Animalia", phylum="Chordata", class_="Aves", order="Passeriformes",
            family="Corvidae", genus="Pica", species="Pica pica",
        )

        assert completeness_score(bare) == 1
        assert completeness_score(full) == 1 + 5 + 3 + 7

    def test_unknown_placeholder_not_counted(self):
        assert completeness_score(candidate(1, "X y", kingdom="unknown")) == 9

    @pytest.mark.parametrize("rank", ["kingdom", "phylum", "class_", "order", "family", "genus", "species"])
    def test_adding_a_rank_never_lowers_score(self, rank):
        """Filling any rank raises the score by exactly one."""
        base = candidate(1, "Pica pica")
        filled = candidate(1, "Pica pica", **{rank: "Value"})

        assert completeness_score(filled) == completeness_score(base) + 1
