"""
Deduplicator

Collapses records that name the same species. Records are grouped by
normalized binomial ("genus species", authorship removed, lower-cased).
Within a group the record with the higher status priority is kept
(ACCEPTED > DOUBTFUL > synonyms > other); the first seen wins ties.
Groups keep the order in which they were first seen.
"""

import re
from typing import Dict, List, Sequence

from app.taxonomy.base import ResolvedSpecies

BINOMIAL_PREFIX = re.compile(r"^([A-Z][a-z]+ [a-z]+)")


def normalize_species_name(scientific_name: str) -> str:
    """
    Normalized binomial used as the deduplication key.

    >>> normalize_species_name("Pica pica (Linnaeus, 1758)")
    'pica pica'
    """
    text = scientific_name.strip()
    match = BINOMIAL_PREFIX.match(text)
    if match:
        return match.group(1).lower()
    return text.lower()


def deduplicate(records: Sequence[ResolvedSpecies]) -> List[ResolvedSpecies]:
    kept: Dict[str, ResolvedSpecies] = {}
    for record in records:
        key = normalize_species_name(record.scientific_name)
        existing = kept.get(key)
        if existing is None:
            kept[key] = record
        elif record.taxonomic_status.priority > existing.taxonomic_status.priority:
            # replacement keeps the group's original position
            kept[key] = record
    return list(kept.values())
