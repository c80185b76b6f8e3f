"""
Enumerations for the species resolution system.

These enums provide type safety and clear documentation of valid values.
Values mirror the strings used by the upstream services so they can be
sent and compared without translation.
"""

from enum import Enum
from typing import Any


class TaxonomicStatus(str, Enum):
    """Taxonomic status of a name as reported by the GBIF backbone."""
    ACCEPTED = "ACCEPTED"
    SYNONYM = "SYNONYM"
    HOMOTYPIC_SYNONYM = "HOMOTYPIC_SYNONYM"
    HETEROTYPIC_SYNONYM = "HETEROTYPIC_SYNONYM"
    PROPARTE_SYNONYM = "PROPARTE_SYNONYM"
    MISAPPLIED = "MISAPPLIED"
    DOUBTFUL = "DOUBTFUL"
    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: Any) -> "TaxonomicStatus":
        """Parse an upstream status string, falling back to UNKNOWN."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            return cls.UNKNOWN
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_synonym(self) -> bool:
        return self in _SYNONYM_STATUSES

    @property
    def priority(self) -> int:
        """
        Deduplication priority.

        ACCEPTED (4) > DOUBTFUL (3) > any synonym variant (2) > anything else (1).
        """
        if self is TaxonomicStatus.ACCEPTED:
            return 4
        if self is TaxonomicStatus.DOUBTFUL:
            return 3
        if self.is_synonym:
            return 2
        return 1


_SYNONYM_STATUSES = frozenset({
    TaxonomicStatus.SYNONYM,
    TaxonomicStatus.HOMOTYPIC_SYNONYM,
    TaxonomicStatus.HETEROTYPIC_SYNONYM,
    TaxonomicStatus.PROPARTE_SYNONYM,
})


class TaxonRank(str, Enum):
    """Rank filters accepted by the species search endpoint."""
    KINGDOM = "KINGDOM"
    PHYLUM = "PHYLUM"
    CLASS = "CLASS"
    ORDER = "ORDER"
    FAMILY = "FAMILY"
    GENUS = "GENUS"
    SPECIES = "SPECIES"
    SUBSPECIES = "SUBSPECIES"


class DetectionSource(str, Enum):
    """Where a raw detection came from in the vision payload."""
    LABEL = "label_detection"
    OBJECT = "object_detection"


class OptionSource(str, Enum):
    """How a species option was extracted from the detections."""
    SPECIES_DETECTION = "species_detection"
    GENERAL_DETECTION = "general_detection"


class ImageProvider(str, Enum):
    """Image providers, in cascade order."""
    GBIF = "gbif"
    INATURALIST = "inaturalist"
    WIKIPEDIA = "wikipedia"
    FLICKR = "flickr"


class ErrorKind(str, Enum):
    """Failure categories reported by upstream adapters and pipeline stages."""
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    NOT_FOUND = "not_found"
    AMBIGUOUS_INPUT = "ambiguous_input"
    TIMEOUT = "timeout"
